"""Entry points: run the relayer, sign pay stubs, build Merkle allowlists."""

import argparse
import json
import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from eth_account import Account

from .authorization import TransferAuthorizer
from .config import ANVIL_DIRECTOR_KEY, NETWORKS, Config
from .cpamm import CPAMM
from .eip712 import TypedDataDomain, sign_typed_data
from .merkle import MerkleTree, StandardMerkleTree, dump_allowlist
from .payroll import Payroll
from .relayer import Relayer, create_app
from .token import Token
from .types import PayStub

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 202505
DEFAULT_USD_AMOUNT = 1100  # 11 USD, in cents


def build_relayer(config: Config) -> Relayer:
    """Wire a fresh in-memory deployment from the configuration."""
    director = Account.from_key(config.director_private_key).address

    token = Token("Payroll USD", "PUSD", config.token_address)
    pair_token = Token("Pair Token", "PAIR", config.pair_token_address)

    payroll_domain = TypedDataDomain(
        config.domain_name, config.domain_version, config.chain_id, config.payroll_address
    )
    payroll = Payroll(director, token, payroll_domain)
    token.mint(payroll.address, config.payroll_funding)

    token_domain = TypedDataDomain(token.name, "1", config.chain_id, token.address)
    authorizer = TransferAuthorizer(token, token_domain)
    pool = CPAMM(token, pair_token, config.pool_address)

    return Relayer(payroll, authorizer, pool)


def sign_pay_stub(network: str, private_key: str, period: int, usd_amount: int) -> dict:
    """Sign a pay stub for a network preset and return the signature bundle."""
    preset = NETWORKS[network]
    domain = TypedDataDomain("Payroll IT", "1", preset.chain_id, preset.verifying_contract)
    stub = PayStub(employee=preset.employee_address, period=period, usd_amount=usd_amount)

    signature = sign_typed_data(stub, domain, private_key)

    return {
        "signature": "0x" + signature.hex(),
        "message": {
            "employee": stub.employee,
            "period": str(stub.period),
            "usdAmount": str(stub.usd_amount),
        },
        "domain": domain.as_dict(),
    }


def build_allowlist(addresses: list[str], standard: bool = False, description: str = "") -> dict:
    if standard:
        tree = StandardMerkleTree.of([[a] for a in addresses], ["address"])
    else:
        tree = MerkleTree.from_addresses(addresses)
    proofs = {a: tree.get_proof(i) for i, a in enumerate(addresses)}
    return dump_allowlist(tree.root, proofs, addresses, description)


def _serve(config: Config, args):
    if args.port:
        config.api_port = args.port

    logger.info(f"Config loaded:")
    logger.info(f"  Chain ID: {config.chain_id}")
    logger.info(f"  Payroll:  {config.payroll_address}")
    logger.info(f"  Token:    {config.token_address}")
    logger.info(f"  Pool:     {config.pool_address}")

    relayer = build_relayer(config)
    app = create_app(relayer, config=config)

    logger.info(f"Relayer starting on {config.api_host}:{config.api_port}")
    uvicorn.run(app, host=config.api_host, port=config.api_port, log_level="info")


def _pay_stub(config: Config, args):
    # Local chains sign with the well-known Anvil key
    if args.network == "local":
        private_key = ANVIL_DIRECTOR_KEY
        logger.info("Using local Anvil private key")
    else:
        private_key = config.director_private_key
        if not private_key or private_key == ANVIL_DIRECTOR_KEY:
            raise SystemExit("DIRECTOR_PRIVATE_KEY environment variable is not set.")
        logger.info("Using private key from environment variable")

    bundle = sign_pay_stub(args.network, private_key, args.period, args.usd_amount)
    output = Path(args.output or NETWORKS[args.network].output_file)
    output.write_text(json.dumps(bundle, indent=2))

    logger.info(f"Signature generated and saved to {output}")
    logger.info(f"Signature: {bundle['signature']}")


def _merkle(config: Config, args):
    addresses = [
        line.strip() for line in Path(args.addresses).read_text().splitlines() if line.strip()
    ]
    logger.info(f"Total participants: {len(addresses)}")

    data = build_allowlist(addresses, standard=args.standard, description=args.description)
    Path(args.output).write_text(json.dumps(data, indent=2))

    logger.info(f"Merkle root: {data['merkleRoot']}")
    logger.info(f"Merkle data saved to {args.output}")


def main():
    """Entry point."""
    # Load .env from the working directory
    load_dotenv(Path.cwd() / ".env")

    parser = argparse.ArgumentParser(description="chainlab")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the relayer API")
    serve.add_argument("--port", type=int, default=None, help="API port")
    serve.set_defaults(handler=_serve)

    pay_stub = subparsers.add_parser("pay-stub", help="Sign a pay stub with the director key")
    pay_stub.add_argument("network", choices=sorted(NETWORKS), help="Network preset")
    pay_stub.add_argument("--period", type=int, default=DEFAULT_PERIOD)
    pay_stub.add_argument("--usd-amount", type=int, default=DEFAULT_USD_AMOUNT, help="Amount in cents")
    pay_stub.add_argument("--output", default=None, help="Output JSON path")
    pay_stub.set_defaults(handler=_pay_stub)

    merkle = subparsers.add_parser("merkle", help="Build an address allowlist Merkle tree")
    merkle.add_argument("addresses", help="File with one address per line")
    merkle.add_argument("--standard", action="store_true", help="Use the OpenZeppelin standard tree")
    merkle.add_argument("--output", default="merkle_data.json")
    merkle.add_argument("--description", default="")
    merkle.set_defaults(handler=_merkle)

    args = parser.parse_args()
    args.handler(Config(), args)


if __name__ == "__main__":
    main()
