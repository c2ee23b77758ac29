"""Operator command line for checking a Game Center signature.

Commands:
    gcauth verify    Verify one signature and print the outcome as JSON
"""

import asyncio
import base64
import binascii
import json
import sys

import typer

from gcauth.core.config import DEFAULT_EXPIRY_MILLIS
from gcauth.core.logging import configure_logging
from gcauth.verifier import GCAuth

EXIT_VALIDATION_FAILURE = 1
EXIT_PARSE_ERROR = 2

app = typer.Typer(
    name="gcauth",
    help="Verify Game Center identity signatures.",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """Game Center identity signature tools."""


def _decode_base64(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        typer.echo(
            json.dumps({"error": "PARSE_ERROR", "message": f"{name} is not base64: {e}"}),
            err=True,
        )
        raise typer.Exit(code=EXIT_PARSE_ERROR)


@app.command("verify")
def verify_cmd(
    bundle_id: str = typer.Option(..., "--bundle-id", help="Application bundle ID"),
    player_id: str = typer.Option(..., "--player-id", help="teamPlayerID / gamePlayerID"),
    public_key_url: str = typer.Option(..., "--public-key-url", help="publicKeyURL"),
    timestamp: int = typer.Option(..., "--timestamp", help="Timestamp in milliseconds"),
    salt: str = typer.Option(..., "--salt", help="Base64 salt"),
    signature: str = typer.Option(..., "--signature", help="Base64 signature"),
    sandbox: bool = typer.Option(False, "--sandbox", help="Use the sandbox key host"),
    expiry_ms: int = typer.Option(
        DEFAULT_EXPIRY_MILLIS, "--expiry-ms", help="Accepted signature age in ms"
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """Verify a signature returned by fetchItemsForIdentityVerificationSignature.

    Examples:
        gcauth verify --bundle-id com.example.app --player-id T:abc123 \\
            --public-key-url https://static.gc.apple.com/public-key/gc-prod-10.cer \\
            --timestamp 1700000000000 --salt AQI= --signature <base64>
    """
    configure_logging(log_level=log_level, stream=sys.stderr)

    salt_bytes = _decode_base64(salt, "salt")
    signature_bytes = _decode_base64(signature, "signature")

    try:
        auth = GCAuth(bundle_id, expiry_time=expiry_ms, sandbox=sandbox)
    except ValueError as e:
        typer.echo(json.dumps({"error": "PARSE_ERROR", "message": str(e)}), err=True)
        raise typer.Exit(code=EXIT_PARSE_ERROR)

    result = asyncio.run(
        auth.check(player_id, public_key_url, timestamp, salt_bytes, signature_bytes)
    )

    typer.echo(json.dumps(result.to_dict(), indent=2))
    if not result.valid:
        raise typer.Exit(code=EXIT_VALIDATION_FAILURE)


if __name__ == "__main__":
    app()
