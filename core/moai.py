"""
Moai faces and the canned, offline commit feedback.
"""
import datetime
import random
from typing import Optional

FACES = (
    "(ò_ó)",
    "(¬_¬)",
    "(⊙_⊙)",
    "(ಠ_ಠ)",
    "(•_•)",
    "(︶︹︶)",
    "(◔_◔)",
    "(≖_≖)",
    "(・_・ヾ",
    "(눈_눈)",
)

GENERIC_FEEDBACK = (
    "Another commit. The Moai is unmoved.",
    "Bold of you to push that without a second look.",
    "The Moai has seen worse. Not often, but it has.",
    "History will remember this commit. Briefly.",
    "Solid work. The Moai nods almost imperceptibly.",
    "A commit so ordinary it is almost impressive.",
)

SHORT_MESSAGE_FEEDBACK = (
    "Short message. Are we saving characters for a rainy day?",
    "The Moai has written longer messages in stone.",
    "Future you will love decoding that message.",
)

FIX_FEEDBACK = (
    "A fix! Let us pretend the bug was never yours.",
    "Fixing things you broke counts as progress, technically.",
    "Another bug falls. Ten more rise in its place.",
)

WIP_FEEDBACK = (
    "Work in progress, or progress in work? The Moai wonders.",
    "A WIP commit. Bravely kicking the can down the road.",
)

LATE_NIGHT_FEEDBACK = (
    "Committing at this hour? The Moai is judging your sleep schedule.",
    "Nothing good is committed after midnight. Let us hope this is the exception.",
)

SHORT_MESSAGE_LENGTH = 10


def random_face(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(FACES)


def local_feedback(
    message: str,
    timestamp: Optional[datetime.datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Picks a canned line from a few message and time-of-day heuristics."""
    rng = rng or random
    text = (message or "").strip()
    lowered = text.lower()
    hour = (timestamp or datetime.datetime.now()).hour

    if lowered.startswith("wip") or "work in progress" in lowered:
        pool = WIP_FEEDBACK
    elif len(text) < SHORT_MESSAGE_LENGTH:
        pool = SHORT_MESSAGE_FEEDBACK
    elif lowered.startswith("fix") or " fix" in lowered or "bug" in lowered:
        pool = FIX_FEEDBACK
    elif 0 <= hour < 5:
        pool = LATE_NIGHT_FEEDBACK
    else:
        pool = GENERIC_FEEDBACK
    return rng.choice(pool)
