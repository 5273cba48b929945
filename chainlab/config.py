"""Configuration for the chainlab relayer and signing tools."""

import os
from dataclasses import dataclass, field

# Anvil's first well-known dev account; acts as director on local chains
ANVIL_DIRECTOR_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


@dataclass(frozen=True)
class NetworkConfig:
    chain_id: int
    verifying_contract: str  # deployed Payroll instance
    output_file: str
    employee_address: str


NETWORKS = {
    "sepolia": NetworkConfig(
        chain_id=11155111,
        verifying_contract="0xA115aFAf44ab10A0E2a91E370affe6aFA312fD4e",
        output_file="signature.json",
        employee_address="0x4cd51E138D3cdF9f4E723F33DeF144D71E189b8E",
    ),
    "local": NetworkConfig(
        chain_id=31337,
        verifying_contract="0x75537828f2ce51be7289709686A69CbFDbB714F1",
        output_file="signature_local.json",
        employee_address="0xa0Ee7A142d267C1f36714E4a8F75612F20a79720",  # Anvil account index 9
    ),
}


@dataclass
class Config:
    """Relayer configuration."""

    # Signing domain
    domain_name: str = field(default_factory=lambda: os.getenv("DOMAIN_NAME", "Payroll IT"))
    domain_version: str = field(default_factory=lambda: os.getenv("DOMAIN_VERSION", "1"))

    # Contract addresses
    payroll_address: str = field(
        default_factory=lambda: os.getenv("VERIFYING_CONTRACT", NETWORKS["local"].verifying_contract)
    )
    token_address: str = field(
        default_factory=lambda: os.getenv("TOKEN_ADDRESS", "0x0000000000000000000000000000000000001111")
    )
    pair_token_address: str = field(
        default_factory=lambda: os.getenv("PAIR_TOKEN_ADDRESS", "0x0000000000000000000000000000000000002222")
    )
    pool_address: str = field(
        default_factory=lambda: os.getenv("POOL_ADDRESS", "0x0000000000000000000000000000000000003333")
    )

    # Director private key (signs pay stubs)
    director_private_key: str = field(
        default_factory=lambda: os.getenv("DIRECTOR_PRIVATE_KEY", ANVIL_DIRECTOR_KEY)
    )

    # Payroll funding for a fresh in-memory deployment (token base units)
    payroll_funding: int = 1_000_000 * 10**18

    # API
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))

    # Chain (11155111 = Sepolia, 31337 = Anvil)
    chain_id: int = field(default_factory=lambda: int(os.getenv("CHAIN_ID", "31337")))
