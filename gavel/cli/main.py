"""
Gavel CLI - Command Line Interface for the English auction

Main entry point for all CLI commands. Every command is one external call:
it loads the persisted state, invokes a handler with the caller's address,
and persists the outcome.
"""

from pathlib import Path

import click

from gavel.core.config import load_config
from gavel.utils.logger import setup_logging, get_logger

logger = get_logger("cli")


def resolve_address(value: str) -> bytes:
    """Accept a 0x address or an account label."""
    from gavel.crypto import address_from_label, hex_to_bytes
    from gavel.utils.validation import validate_address_hex

    if not value.startswith(("0x", "0X")):
        return address_from_label(value)

    valid, error = validate_address_hex(value)
    if not valid:
        raise click.BadParameter(error)
    return hex_to_bytes(value)


def parse_auction_address(value: str) -> bytes:
    """Decode the --auction option or fail with a usage error."""
    from gavel.crypto import hex_to_bytes
    from gavel.utils.validation import validate_address_hex

    valid, error = validate_address_hex(value, "auction")
    if not valid:
        raise click.BadParameter(error, param_hint="--auction")
    return hex_to_bytes(value)


def open_storage(ctx):
    from gavel.core.storage import StorageManager

    config = ctx.obj["config"]
    return StorageManager(data_dir=ctx.obj["data_dir"], db_name=config.db_name)


def load_auction(ctx, auction_address: str):
    """Reattach to a persisted auction or exit with an error."""
    from gavel.core.auction import EnglishAuction

    address = parse_auction_address(auction_address)
    storage = open_storage(ctx)
    try:
        return EnglishAuction.load(address, storage)
    except KeyError:
        logger.debug(f"Lookup of unknown auction {auction_address}")
        click.echo(f"❌ No auction at {auction_address}")
        ctx.exit(1)


def run_handler(ctx, fn, *args):
    """Invoke a handler, turning auction errors into a failed exit."""
    from gavel.core.errors import AuctionError

    try:
        return fn(*args)
    except AuctionError as e:
        click.echo(f"❌ {e.name}: {e.reason}")
        ctx.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory")
@click.option("--env-file", default=None, help="Optional .env file with GAVEL_* settings")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, env_file):
    """Gavel - time-boxed English auction"""
    try:
        config = load_config(env_file)
    except ValueError as e:
        raise click.UsageError(str(e))

    if data_dir:
        config.data_dir = Path(data_dir)

    setup_logging(
        level="DEBUG" if debug else config.log_level,
        log_dir=str(config.log_dir),
        log_to_file=config.log_to_file,
    )

    config.ensure_directories()

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["data_dir"] = config.data_dir.expanduser()


# =============================================================================
# Account Commands
# =============================================================================

@cli.group()
def account():
    """Account management commands"""
    pass


@account.command("address")
@click.option("--name", required=True, help="Account label")
def account_address(name):
    """Show the address derived from an account label"""
    from gavel.crypto import bytes_to_hex

    click.echo(bytes_to_hex(resolve_address(name)))


@account.command("fund")
@click.option("--name", required=True, help="Account label or 0x address")
@click.option("--amount", required=True, type=click.IntRange(min=0), help="Amount to credit")
@click.pass_context
def account_fund(ctx, name, amount):
    """Credit an account from the faucet (demo mode)"""
    from gavel.core.treasury import Treasury
    from gavel.crypto import bytes_to_hex

    address = resolve_address(name)
    treasury = Treasury(open_storage(ctx))
    balance = treasury.mint(address, amount)

    click.echo(f"✓ Funded {name} ({bytes_to_hex(address)[:12]}...)")
    click.echo(f"  Balance: {balance}")


@account.command("balance")
@click.option("--name", required=True, help="Account label or 0x address")
@click.pass_context
def account_balance(ctx, name):
    """Show an account balance"""
    from gavel.core.treasury import Treasury
    from gavel.crypto import bytes_to_hex

    address = resolve_address(name)
    treasury = Treasury(open_storage(ctx))

    click.echo(f"Address: {bytes_to_hex(address)}")
    click.echo(f"Balance: {treasury.balance_of(address)}")


# =============================================================================
# Auction Commands
# =============================================================================

@cli.group()
def auction():
    """Auction commands"""
    pass


@auction.command("create")
@click.option("--owner", required=True, help="Deployer account label or 0x address")
@click.option("--prize", required=True, help="Prize descriptor")
@click.option("--duration", default=None, type=click.IntRange(min=0), help="Bidding duration in seconds")
@click.pass_context
def auction_create(ctx, owner, prize, duration):
    """Deploy a new auction"""
    from gavel.core.auction import EnglishAuction
    from gavel.crypto import bytes_to_hex

    config = ctx.obj["config"]
    if duration is None:
        duration = config.default_bidding_duration

    try:
        deployed = EnglishAuction(
            owner=resolve_address(owner),
            prize=prize,
            bidding_duration=duration,
            storage_manager=open_storage(ctx),
            max_prize_length=config.max_prize_length,
        )
    except ValueError as e:
        click.echo(f"❌ {e}")
        ctx.exit(1)

    click.echo(f"✓ Auction deployed: {bytes_to_hex(deployed.address)}")
    click.echo(f"  Owner: {bytes_to_hex(deployed.owner)}")
    click.echo(f"  Prize: {deployed.prize}")
    click.echo(f"  Ends at: {deployed.end_time} ({duration}s from now)")


@auction.command("bid")
@click.option("--auction", "auction_address", required=True, help="Auction address (0x...)")
@click.option("--from", "sender", required=True, help="Bidder account label or 0x address")
@click.option("--value", required=True, type=click.IntRange(min=0), help="Bid amount")
@click.pass_context
def auction_bid(ctx, auction_address, sender, value):
    """Place a bid"""
    target = load_auction(ctx, auction_address)
    run_handler(ctx, target.place_bid, resolve_address(sender), value)

    click.echo(f"✅ Bid of {value} accepted from {sender}")
    click.echo(f"   Highest bid: {target.highest_bid}")


@auction.command("end")
@click.option("--auction", "auction_address", required=True, help="Auction address (0x...)")
@click.option("--from", "sender", required=True, help="Owner account label or 0x address")
@click.pass_context
def auction_end(ctx, auction_address, sender):
    """End the auction (owner only, after the deadline)"""
    from gavel.crypto import ZERO_ADDRESS, bytes_to_hex

    target = load_auction(ctx, auction_address)
    run_handler(ctx, target.end_auction, resolve_address(sender))

    click.echo("✅ Auction ended")
    if target.winner == ZERO_ADDRESS:
        click.echo("   ⚠️  No bids were placed")
    else:
        click.echo(f"   Winner: {bytes_to_hex(target.winner)}")
        click.echo(f"   Amount: {target.bids(target.winner)}")


@auction.command("withdraw")
@click.option("--auction", "auction_address", required=True, help="Auction address (0x...)")
@click.option("--from", "sender", required=True, help="Bidder account label or 0x address")
@click.pass_context
def auction_withdraw(ctx, auction_address, sender):
    """Withdraw a losing bidder's funds"""
    target = load_auction(ctx, auction_address)
    caller = resolve_address(sender)
    before = target.treasury.balance_of(caller)

    run_handler(ctx, target.withdraw, caller)

    click.echo(f"✅ Refunded {target.treasury.balance_of(caller) - before} to {sender}")


@auction.command("claim")
@click.option("--auction", "auction_address", required=True, help="Auction address (0x...)")
@click.option("--from", "sender", required=True, help="Winner account label or 0x address")
@click.pass_context
def auction_claim(ctx, auction_address, sender):
    """Claim the prize (winner only, after the auction ends)"""
    target = load_auction(ctx, auction_address)
    prize = run_handler(ctx, target.claim_prize, resolve_address(sender))

    click.echo(f"🏆 Prize: {prize}")


@auction.command("show")
@click.option("--auction", "auction_address", required=True, help="Auction address (0x...)")
@click.pass_context
def auction_show(ctx, auction_address):
    """Show the public state of an auction"""
    target = load_auction(ctx, auction_address)

    click.echo("Auction")
    click.echo("-" * 40)
    for key, value in target.stats().items():
        click.echo(f"  {key}: {value}")


@auction.command("list")
@click.pass_context
def auction_list(ctx):
    """List deployed auctions"""
    from gavel.crypto import bytes_to_hex

    storage = open_storage(ctx)
    addresses = storage.list_auctions()
    if not addresses:
        click.echo("No auctions found.")
        return

    for address in addresses:
        store = storage.load_auction(address)
        status = "ended" if store.is_auction_ended else "open"
        click.echo(f"  {bytes_to_hex(address)}: {store.prize} ({status}, highest bid {store.highest_bid})")


@auction.command("events")
@click.option("--auction", "auction_address", required=True, help="Auction address (0x...)")
@click.pass_context
def auction_events(ctx, auction_address):
    """Show events emitted by an auction"""
    events = open_storage(ctx).load_events(parse_auction_address(auction_address))
    if not events:
        click.echo("No events.")
        return

    for i, event in enumerate(events):
        fields = {k: v for k, v in event.to_dict().items() if k != "contract"}
        details = ", ".join(f"{k}={v}" for k, v in fields.items())
        click.echo(f"  {i+1}. {event.name}({details})")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--duration", default=100, type=click.IntRange(min=1), help="Bidding duration in seconds")
def demo(duration):
    """Run an in-memory auction through its whole lifecycle"""
    from gavel.core.auction import EnglishAuction
    from gavel.core.clock import ManualClock
    from gavel.core.errors import AuctionError
    from gavel.core.treasury import Treasury
    from gavel.crypto import address_from_label

    def attempt(label, fn, *args):
        try:
            result = fn(*args)
        except AuctionError as e:
            click.echo(f"  ✗ {label}: {e.name}")
            return None
        click.echo(f"  ✓ {label}")
        return result

    click.echo("=" * 60)
    click.echo("  GAVEL - DEMO")
    click.echo("=" * 60)
    click.echo()

    owner = address_from_label("owner")
    x = address_from_label("x")
    y = address_from_label("y")

    clock = ManualClock(start=1_000_000)
    treasury = Treasury()
    treasury.mint(x, 100)
    treasury.mint(y, 100)

    auction = EnglishAuction(owner, "Signed first edition", duration, clock=clock, treasury=treasury)
    click.echo(f"📦 Auction deployed, bidding for {duration}s")
    click.echo()

    click.echo("💸 Bidding...")
    attempt("X bids 10", auction.place_bid, x, 10)
    attempt("Y bids 10", auction.place_bid, y, 10)
    attempt("Y bids 20", auction.place_bid, y, 20)
    click.echo(f"  Highest bid: {auction.highest_bid}")
    click.echo()

    click.echo("⚖️  Ending...")
    attempt("Owner ends before deadline", auction.end_auction, owner)
    clock.advance(duration + 1)
    attempt("X ends after deadline", auction.end_auction, x)
    attempt("Owner ends after deadline", auction.end_auction, owner)
    click.echo()

    click.echo("🔐 Settlement...")
    attempt("X withdraws", auction.withdraw, x)
    attempt("X withdraws again", auction.withdraw, x)
    attempt("Y (winner) withdraws", auction.withdraw, y)
    prize = attempt("Y claims prize", auction.claim_prize, y)
    attempt("X claims prize", auction.claim_prize, x)
    click.echo()

    click.echo("📊 Final state:")
    click.echo(f"  Prize claimed: {prize}")
    click.echo(f"  X balance: {treasury.balance_of(x)}")
    click.echo(f"  Y balance: {treasury.balance_of(y)}")
    click.echo(f"  Custody: {treasury.balance_of(auction.address)}")
    click.echo(f"  Events: {len(auction.events())}")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()
