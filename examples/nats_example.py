"""Minimal example for RedisEmulator using a NATS JetStream KV backend."""

from redis_emulator.backends.nats import NatsBackend
from redis_emulator.client import RedisEmulator
from redis_emulator.configuration import Configuration


def main() -> None:
    """Run commands by name against NATS JetStream KV, like a protocol front-end would."""
    configuration = Configuration(NatsBackend(url="nats://nats:4222", bucket="redis_emulator", create_bucket=True))
    redis = RedisEmulator(configuration)
    try:
        for command in (["SET", "user", "alice", "NX"], ["GET", "user"], ["STRLEN", "user"], ["DEL", "user"]):
            print(*command, "->", redis.execute_command(*command))
    finally:
        configuration.close()


if __name__ == "__main__":
    main()
