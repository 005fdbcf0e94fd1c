import asyncio

import httpx

from gasless_relay import RelayClient

owner_key = "0xxxx"  # Replace with the token owner's private key
usdc = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"  # Sepolia USDC
recipient = "0x000000000000000000000000000000000000dEaD"


async def main():
    async with RelayClient(
        base_url="http://localhost:3001",
        timeout=httpx.Timeout(60.0),
    ) as client:
        request = await client.build_relay_request(
            private_key=owner_key,
            token=usdc,
            recipient=recipient,
            amount=1_000_000,  # 1 USDC
            token_decimals=6,
            token_name="USDC",
            token_version="2",
            permit_nonce=0,  # read from the token's nonces(owner)
        )
        tx_hash = await client.relay(request)
        print("Submitted:", tx_hash)
        return await client.wait_for_transaction(tx_hash)


if __name__ == "__main__":
    print("Final status:", asyncio.run(main()))
