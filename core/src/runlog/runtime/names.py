from __future__ import annotations

import random

ADJECTIVES = (
    "amber", "brave", "bright", "calm", "clever", "crimson", "daring", "eager",
    "fancy", "gentle", "gray", "hidden", "icy", "jolly", "keen", "lively",
    "lucky", "mellow", "nimble", "olive", "proud", "quiet", "rapid", "rustic",
    "silver", "steady", "swift", "tidy", "vivid", "witty",
)

ANIMALS = (
    "badger", "beaver", "bison", "camel", "cobra", "coyote", "dingo", "dolphin",
    "falcon", "ferret", "gecko", "heron", "ibis", "jackal", "koala", "lemur",
    "lynx", "marmot", "narwhal", "ocelot", "otter", "panda", "quail", "raven",
    "salmon", "tapir", "toucan", "walrus", "wombat", "yak",
)


def generate_run_name(rng: random.Random | None = None) -> str:
    """Return a display name such as ``gray-dingo``."""
    chooser = rng if rng is not None else random
    return f"{chooser.choice(ADJECTIVES)}-{chooser.choice(ANIMALS)}"
