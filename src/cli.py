import json
import secrets
import sys

import click
import requests
from pydantic import ValidationError
from pydantic_settings import SettingsError

from relay.config import ConfigRegistry, get_settings
from relay.errors import ConfigError


@click.group()
def cli():
    pass


@cli.command()
@click.option('--length', default=32, help='Number of random bytes in the generated token')
def generate_bank_token(length):
    """Generate a random shared token for a bank's BANK_TOKENS entry."""
    token = secrets.token_urlsafe(length)

    print(f"token={token}")

    return token


@cli.command()
def check_config():
    """Load the configuration and list the banks that can take part in transfers."""
    try:
        registry = ConfigRegistry.from_settings(get_settings())
    except (ValidationError, SettingsError, ConfigError) as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    for bank_id in registry.banks():
        print(f"{bank_id}: {registry.endpoint_for(bank_id)}")


@cli.command()
@click.option('--server-url', default="http://localhost:8080", help='Base URL of the running relay')
@click.option('--token', type=str, prompt="Sender bank token", hide_input=True, help='Shared token of the sender bank')
@click.option('--sender-bank', type=str, prompt="Sender bank id", help='Sender bank id')
@click.option('--receiver-bank', type=str, prompt="Receiver bank id", help='Receiver bank id')
@click.option('--sender-account', type=int, prompt="Sender account number", help='Sender account number')
@click.option('--receiver-account', type=int, prompt="Receiver account number", help='Receiver account number')
@click.option('--amount', type=str, prompt="Amount", help='Amount to transfer')
@click.option('--message', type=str, default="", help='Free-text message')
@click.option('--transfer-id', type=str, default=None, help='Optional transfer id')
def send_transfer(server_url, token, sender_bank, receiver_bank, sender_account, receiver_account, amount, message, transfer_id):
    """Send a transfer through a running relay and print its answer."""
    body = {
        "senderBankId": sender_bank,
        "receiverBankId": receiver_bank,
        "senderAccountNumber": sender_account,
        "receiverAccountNumber": receiver_account,
        "amount": amount,
        "message": message,
    }
    if transfer_id:
        body["transferId"] = transfer_id

    response = requests.post(
        f"{server_url}/transfer",
        json=body,
        headers={"Token": token},
        timeout=30,
    )
    print(response.status_code, json.dumps(response.json()))


if __name__ == "__main__":
    cli()
