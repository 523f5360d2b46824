"""Minimal example for RedisEmulator using a Redis-compatible backend."""

import redis_emulator
from redis_emulator.backends.redis import RedisBackend


def main() -> None:
    """Install a process-wide backend and run commands against Redis/Dragonfly."""
    redis_emulator.configure(RedisBackend(url="redis://redis:6379/0"))
    redis = redis_emulator.RedisEmulator()
    try:
        redis.set("session", "abc", ex=60)
        print("session:", redis.get("session"))
        print("exists:", redis.exists("session", "missing"))

        redis.mset("a", "1", "b", "2")
        print("mget:", redis.mget("a", "b", "c"))
        print("pipelined:", redis.pipelined(lambda pipe: [pipe.incr("a"), pipe.decrby("b", 5)]))
    finally:
        redis_emulator.reset_configuration()


if __name__ == "__main__":
    main()
