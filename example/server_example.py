from gasless_relay import RelayServer
from gasless_relay.engine.events import RelayRejectedEvent, RelaySubmittedEvent

# Settings come from the environment / .env (CHAIN_RPC_URL, RELAYER_CONTRACT, PRIVATE_KEY, ...)
app = RelayServer(title="Gasless Relay API")


# Optional: Add event hooks for custom logic
@app.hook(RelaySubmittedEvent)
async def on_submitted(event, deps):
    """Runs after every broadcast relay."""
    print(f"Relay submitted: {event.tx_hash}")


@app.hook(RelayRejectedEvent)
async def on_rejected(event, deps):
    """Runs for every rejected relay."""
    print(f"Relay rejected ({event.error.status_code}): {event.error.public_message}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="localhost", port=3001, log_level="info")
