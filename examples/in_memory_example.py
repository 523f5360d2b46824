"""Minimal example for RedisEmulator using the in-memory backend."""

from redis_emulator.backends.in_memory import InMemoryAsyncBackend
from redis_emulator.client import RedisEmulator
from redis_emulator.configuration import Configuration


def main() -> None:
    """Run a basic string/counter flow on the in-memory backend."""
    configuration = Configuration(InMemoryAsyncBackend())
    redis = RedisEmulator(configuration)
    try:
        print("set:", redis.set("greeting", "hello"))
        print("append:", redis.append("greeting", " world"))
        print("get:", redis.get("greeting"))

        print("incr:", redis.incr("visits"), redis.incr("visits"))
        print("setnx again:", redis.setnx("greeting", "ignored"))

        # the backend cannot report these, so they are fixed values
        print("ttl:", redis.ttl("greeting"))
        print("keys:", redis.keys("*"))
    finally:
        configuration.close()


if __name__ == "__main__":
    main()
