# -*- coding: utf-8 -*-
import logging
import multiprocessing
import time

import click

from keyutils.config import (
    DEFAULT_COUNT,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_WORKERS,
    GrindSettings,
    MatchConfig,
    load_settings,
    resolve_workers,
)
from keyutils.errors import KeyUtilsError
from keyutils.searcher import grind_parallel
from keyutils.utils.codec import decode, encode, format_byte_array, parse_byte_array
from keyutils.utils.crypto import (
    encode_public_key,
    encode_secret_key,
    generate_keypair,
    keypair_from_secret,
    save_keypair,
)

logging.basicConfig(level=logging.INFO, format="[%(levelname)s %(asctime)s] %(message)s")


def fail(title: str, error: Exception) -> None:
    click.secho("{} {}".format(title, error), fg="red", err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(package_name="solana-key-utils")
def cli():
    """Utilities for Solana secret keys"""
    pass


@cli.command(name="uint8-to-bs58")
@click.argument("key")
def uint8_to_bs58(key):
    """Convert a Uint8Array secret key ("[1,2,...]" or "1,2,...") to Base58."""
    try:
        b58 = encode(parse_byte_array(key))
    except KeyUtilsError as e:
        fail("Error parsing input:", e)
    click.echo("{} {}".format(click.style("Base58:", fg="green"), b58))


@cli.command(name="bs58-to-uint8")
@click.argument("b58")
def bs58_to_uint8(b58):
    """Convert a Base58 secret key to a Uint8Array."""
    try:
        raw = decode(b58)
    except KeyUtilsError as e:
        fail("Error decoding Base58:", e)
    click.echo("{} {}".format(click.style("Uint8Array:", fg="green"), format_byte_array(raw)))


@cli.command()
def generate():
    """Generate a new secret key."""
    keypair = generate_keypair()
    click.echo("{} {}".format(click.style("Public Key:", fg="blue"), encode_public_key(keypair)))
    click.echo("{} {}".format(click.style("Secret Key (Base58):", fg="green"), encode_secret_key(keypair)))
    click.echo("{} {}".format(
        click.style("Secret Key (Uint8):", fg="yellow"), format_byte_array(keypair.secret_key)
    ))


@cli.command()
@click.argument("secret")
def pubkey(secret):
    """Print the public key of a Base58 secret key (32-byte seed or 64-byte key)."""
    try:
        keypair = keypair_from_secret(decode(secret))
    except KeyUtilsError as e:
        fail("Invalid secret key:", e)
    click.echo("{} {}".format(click.style("Public Key:", fg="blue"), encode_public_key(keypair)))


class ConsoleReporter:
    """Prints matches as they arrive and rewrites a single progress line."""

    def __init__(self, output_dir=None):
        self.output_dir = output_dir
        self._progress_shown = False

    def __call__(self, event):
        if event.kind == "progress":
            click.echo("\rAttempts: {:,}...".format(event.attempts), nl=False)
            self._progress_shown = True
            return
        record = event.record
        if self._progress_shown:
            click.echo()
            self._progress_shown = False
        click.secho("Match #{} found after {:,} attempts:".format(
            record.match_index, record.attempts_at_discovery
        ), fg="green")
        click.echo("{} {}".format(click.style("Public Key:", fg="blue"), record.public_key))
        click.echo("{} {}".format(click.style("Secret Key:", fg="yellow"), record.secret_key))
        if self.output_dir:
            try:
                path = save_keypair(keypair_from_secret(decode(record.secret_key)), self.output_dir)
            except OSError as e:
                fail("Error saving keypair:", e)
            logging.info("Saved keypair to {}".format(path))


@cli.command(context_settings={"show_default": True})
@click.option(
    "--config", "config_path", type=click.Path(exists=True, dir_okay=False),
    help="JSON file with grind settings; command-line options given explicitly win.",
)
@click.option("--starts-with", "-s", type=str, default=None, help="Prefix to match.")
@click.option("--ends-with", "-e", type=str, default=None, help="Suffix to match.")
@click.option("--count", "-c", type=int, default=None, help="Number of keys to find. [default: {}]".format(DEFAULT_COUNT))
@click.option(
    "--ignore-case/--match-case", "-i/-m", default=None,
    help="Ignore case when matching (default: match case, or the config file setting).",
)
@click.option(
    "--workers", "-w", type=int, default=None,
    help="Worker processes (0 = one per CPU). [default: {}]".format(DEFAULT_WORKERS),
)
@click.option(
    "--progress-interval", type=int, default=None,
    help="Report progress every N attempts (0 = off). [default: {:,}]".format(DEFAULT_PROGRESS_INTERVAL),
)
@click.option(
    "--output-dir", type=click.Path(file_okay=False, dir_okay=True), default=None,
    help="Save every match as a keypair JSON file in this directory.",
)
def grind(config_path, starts_with, ends_with, count, ignore_case, workers, progress_interval, output_dir):
    """Grind for a vanity public key."""
    try:
        settings = load_settings(config_path) if config_path else GrindSettings()
    except KeyUtilsError as e:
        fail("Error:", e)

    match = settings.match
    settings.match = MatchConfig(
        prefix=match.prefix if starts_with is None else starts_with,
        suffix=match.suffix if ends_with is None else ends_with,
        ignore_case=match.ignore_case if ignore_case is None else ignore_case,
    )
    if count is not None:
        settings.count = count
    if workers is not None:
        settings.workers = resolve_workers(workers)
    if progress_interval is not None:
        settings.progress_interval = progress_interval
    if output_dir is not None:
        settings.output_dir = output_dir

    try:
        settings.validate()
    except KeyUtilsError as e:
        fail("Error:", e)

    click.secho("Grinding for {} keys...".format(settings.count), fg="cyan")
    logging.info("Looking for public keys that {} using {} worker(s)".format(
        settings.match.describe(), settings.workers
    ))

    run_start = time.time()
    try:
        results, stats = grind_parallel(
            settings.match,
            settings.count,
            settings.workers,
            sink=ConsoleReporter(settings.output_dir),
            progress_interval=settings.progress_interval,
        )
    except KeyboardInterrupt:
        click.echo()
        logging.warning("Interrupted after {:.2f}s".format(time.time() - run_start))
        raise SystemExit(130)
    except KeyUtilsError as e:
        fail("Error:", e)

    click.echo()
    click.secho("Done. Found {} keys in {:.2f}s.".format(len(results), stats.elapsed), fg="cyan")
    logging.info("=== Summary ===")
    logging.info("Total attempts: {:,}".format(stats.total_attempts))
    logging.info("Speed: {:,.0f} keys/s".format(stats.rate))


if __name__ == "__main__":
    multiprocessing.set_start_method("spawn")
    cli()
