#!/usr/bin/env python3
"""Example script demonstrating the Pub/Sub client.

Creates a throwaway topic and subscription, publishes a few messages,
receives them back and cleans up.

Usage:
    python example_pubsub.py my-project

Against the local emulator:
    PUBSUB_EMULATOR_HOST=localhost:8085 python example_pubsub.py test-project
"""

import asyncio
import sys
import uuid

from pdum.cloud import PubSubClient, ReceiveOptions


async def main(project):
    """Publish and receive a handful of messages."""
    suffix = uuid.uuid4().hex[:8]

    async with await PubSubClient.connect(project) as client:
        topic = await client.create_topic(f"example-{suffix}")
        subscription = await topic.create_subscription(f"example-{suffix}")
        print(f"Created {topic.full_resource_name()}")

        try:
            for i in range(3):
                message_id = await topic.publish(f"message {i}", {"index": str(i)})
                print(f"   published {message_id}")

            messages = await subscription.pull(ReceiveOptions(max_messages=10))
            for message in messages:
                print(f"   received {message.id}: {message.text()} {message.attributes}")
                await message.ack()
        finally:
            await subscription.delete()
            await topic.delete()
            print("Cleaned up")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))
