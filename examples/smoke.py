import asyncio

from unified_stream import LLMClient, Message, Model, Provider, RequestConfig
from unified_stream.errors import UnsupportedFeatureError


async def main() -> None:
    client = LLMClient(
        [
            Provider(id="openai", type="openai", api_key="DUMMY"),
            Provider(id="anthropic", type="anthropic", api_key="DUMMY"),
        ]
    )

    for model in (
        Model(id="o3-mini", provider="openai"),
        Model(id="claude-sonnet-4-5", provider="anthropic"),
        Model(id="text-embedding-3-small", provider="openai"),
    ):
        enabled = [kind for kind, on in client.capabilities(model).items() if on]
        print(f"{model.id}: {', '.join(enabled) or '-'}")

    # Demonstrate capability gating (embedding models cannot chat)
    try:
        await client.completions(
            [Message.from_text("user", "hi")],
            RequestConfig(),
            Model(id="text-embedding-3-small", provider="openai"),
        )
    except UnsupportedFeatureError as e:
        print("Expected error:", type(e).__name__, e)


if __name__ == "__main__":
    asyncio.run(main())
