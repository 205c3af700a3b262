"""
Resync Payment — replay a gateway payment through the reconciler.

Use when a webhook was lost or the homologation sync after a payment
update failed. Re-reads the payment from MercadoPago, so running it
any number of times converges to the same state.

Usage:
    python -m scripts.resync_payment 1234567890 [1234567891 ...]
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.api.dependencies import build_services, check_datastore
from src.config.settings import configure_logging, get_settings
from src.core.exceptions import HomologationServiceError
from src.core.use_cases.reconcile_payment import GatewayNotification


async def resync(payment_ids: list[str]) -> int:
    settings = get_settings()
    configure_logging(settings)
    services = build_services(settings)
    failures = 0
    try:
        if not await check_datastore(services, settings.db_connect_timeout):
            print("  ✗ Datastore unavailable")
            return 1

        for payment_id in payment_ids:
            try:
                result = await services.reconcile.execute(GatewayNotification(type="payment", payment_id=payment_id))
            except HomologationServiceError as e:
                failures += 1
                print(f"  ✗ {payment_id}: {e.code}: {e.message}")
                continue
            homologation = result.homologation_status.value if result.homologation_status else "-"
            print(
                f"  ✓ {payment_id}: payment={result.payment_status.value} "
                f"changed={result.payment_changed} stale={result.stale} "
                f"homologation={result.homologation_id} [{homologation}]"
            )
    finally:
        await services.aclose()
    return 1 if failures else 0


def main():
    parser = argparse.ArgumentParser(description="Replay MercadoPago payments through the reconciler")
    parser.add_argument("payment_ids", nargs="+", help="MercadoPago payment ids")
    args = parser.parse_args()
    sys.exit(asyncio.run(resync(args.payment_ids)))


if __name__ == "__main__":
    main()
