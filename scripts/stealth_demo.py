#!/usr/bin/env python3
"""
StealthPay - Stealth Address Demo
===================================
Demo script per stealth addresses.

Usage:
    python scripts/stealth_demo.py
"""

import asyncio
import sys
import tempfile
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stealth_pay.config import get_test_config
from stealth_pay.errors import AddressMismatchError
from stealth_pay.logging_setup import setup_logging
from stealth_pay.services.stealth_service import StealthService
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


async def run_demo(data_dir: Path):
    """Run stealth address demo"""

    console.print(Panel.fit(
        "[cyan]StealthPay - Stealth Address Demo[/cyan]\n\n"
        "Demonstrating unlinkable one-time payment addresses",
        border_style="cyan"
    ))

    settings = get_test_config(data_dir)
    service = StealthService.from_settings(settings)

    # ========================================================================
    # STEP 1: Receiver publishes keys
    # ========================================================================

    console.print("\n[yellow]Step 1: Receiver creates keys and publishes the encryption key[/yellow]")

    receiver = await service.create_key_pair()
    record = await service.publish_keys(receiver)

    console.print("[green]✅ Key record published (signed by identity key)[/green]")

    table = Table(title="Receiver Keys")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Identity", "~" + receiver.sign_pub[:16] + "...")
    table.add_row("Encryption Key", receiver.enc_pub[:16] + "...")
    table.add_row("Signature", record.signature[:16] + "...")

    console.print(table)

    console.print("\n[dim]Only public halves are published[/dim]")

    # ========================================================================
    # STEP 2: Sender issues payments
    # ========================================================================

    console.print("\n[yellow]Step 2: Sender issues two payments to the same identity[/yellow]")

    identity = "~" + receiver.sign_pub
    first = await service.send_to(identity)
    second = await service.send_to(identity)

    payments = Table(title="Announcements")
    payments.add_column("Address", style="cyan")
    payments.add_column("Ephemeral Key", style="green")
    payments.add_column("View Tag", style="magenta")

    for announcement in (first, second):
        payments.add_row(
            announcement.derived_address,
            announcement.ephemeral_enc_pub[:16] + "...",
            announcement.view_tag or "-",
        )

    console.print(payments)
    console.print("[dim]Addresses and ephemeral keys differ: payments are unlinkable[/dim]")

    # ========================================================================
    # STEP 3: Receiver scans
    # ========================================================================

    console.print("\n[yellow]Step 3: Receiver scans announcements[/yellow]")

    owned = await service.scan_for_payments(receiver)
    console.print(f"[green]✅ Found {len(owned)} payment(s)[/green]")

    # ========================================================================
    # STEP 4: Receiver claims
    # ========================================================================

    console.print("\n[yellow]Step 4: Deriving spend keys[/yellow]")

    for announcement in owned:
        wallet = await service.claim(announcement, receiver)
        console.print(f"[green]✅ {wallet.address}[/green] [dim]({wallet.method.value})[/dim]")

    console.print("[dim]Receiver can now spend from each one-time address[/dim]")

    # ========================================================================
    # STEP 5: Privacy demonstration
    # ========================================================================

    console.print("\n[yellow]Step 5: Privacy demonstration[/yellow]")

    stranger = await service.create_key_pair()
    stranger_payments = await service.scan_for_payments(stranger)

    console.print(f"[cyan]Stranger scan result: {len(stranger_payments)} payment(s)[/cyan]")
    console.print(
        f"[cyan]Synchronous check: {service.engine.verify_stealth_address(first, stranger)}[/cyan]"
    )

    try:
        await service.claim(first, stranger)
    except AddressMismatchError:
        console.print("[green]✅ Stranger cannot claim the payment[/green]")

    service.key_store.close()

    # ========================================================================
    # Summary
    # ========================================================================

    console.print("\n" + "=" * 60)
    console.print("[green]Stealth Address Demo Complete![/green]")
    console.print("\n[cyan]Key Benefits:[/cyan]")
    console.print("• Each payment uses a fresh ephemeral key")
    console.print("• Announcements carry no private material")
    console.print("• Only the receiver's encryption key recognizes a payment")
    console.print("• View tags skip most foreign announcements early")


def main():
    setup_logging(log_level="WARNING", log_to_file=False)

    with tempfile.TemporaryDirectory() as data_dir:
        asyncio.run(run_demo(Path(data_dir)))


if __name__ == "__main__":
    main()
