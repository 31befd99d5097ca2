# bookgen/templates.py
"""Starter premises a user can pick instead of writing one from scratch."""

from __future__ import annotations

import random
from typing import List

from bookgen.models import BookTemplate

TEMPLATES: tuple[BookTemplate, ...] = (
    BookTemplate(
        id="fantasy-adventure",
        title="Fantasy Adventure",
        description="An epic journey through a world of magic and mythical creatures",
        genre="fantasy",
        audience="young-adult",
        recommended_size="large",
        prompt=(
            "Write an epic adventure set in a fantasy world with these elements:\n"
            "- A hero or heroine with a special destiny\n"
            "- A loyal and funny companion\n"
            "- A powerful villain with complex motives\n"
            "- Magic, mythical creatures and enchanted places\n"
            "- A journey full of thrilling challenges\n"
            "- A theme of friendship, courage and self-discovery"
        ),
        tags=["epic", "magic", "journey", "friendship"],
    ),
    BookTemplate(
        id="space-opera",
        title="Space Opera",
        description="Interstellar adventures with starships and alien civilizations",
        genre="science-fiction",
        audience="adult",
        recommended_size="large",
        prompt=(
            "Write a thrilling space opera with:\n"
            "- The diverse crew of a starship\n"
            "- The discovery of ancient alien civilizations\n"
            "- Interstellar conflict and galactic diplomacy\n"
            "- Advanced technology and faster-than-light travel\n"
            "- Cosmic mysteries and strange space phenomena\n"
            "- Themes of humanity, exploration and coexistence"
        ),
        tags=["space", "aliens", "technology", "exploration"],
    ),
    BookTemplate(
        id="romantic-comedy",
        title="Romantic Comedy",
        description="Love stories with funny situations and happy endings",
        genre="romance",
        audience="adult",
        recommended_size="medium",
        prompt=(
            "Write a lighthearted romantic comedy with:\n"
            "- Two characters with opposite personalities\n"
            "- Chance meetings and embarrassing situations\n"
            "- Friends or relatives who get in the way or help out\n"
            "- Conflicts that test the relationship\n"
            "- Romantic scenes and funny moments\n"
            "- A happy, satisfying ending"
        ),
        tags=["love", "humor", "relationship", "happiness"],
    ),
    BookTemplate(
        id="mystery-thriller",
        title="Mystery Thriller",
        description="Intriguing stories full of twists and investigations",
        genre="thriller",
        audience="adult",
        recommended_size="medium",
        prompt=(
            "Write a mystery thriller with:\n"
            "- A crime or an unexplained event\n"
            "- A determined detective or investigator\n"
            "- Clues that lead to surprising revelations\n"
            "- Suspects with motives and secrets\n"
            "- Rising tension and moments of danger\n"
            "- An unexpected final twist"
        ),
        tags=["mystery", "investigation", "suspense", "twist"],
    ),
    BookTemplate(
        id="children-fable",
        title="Children's Fable",
        description="Educational tales with talking animals and a moral",
        genre="children",
        audience="children",
        recommended_size="small",
        prompt=(
            "Write an educational children's fable with:\n"
            "- Animals with human traits\n"
            "- A simple conflict or problem that is easy to understand\n"
            "- A journey of learning and discovery\n"
            "- Simple dialogue suitable for children\n"
            "- A positive moral at the end\n"
            "- Gentle elements of fantasy and magic"
        ),
        tags=["educational", "animals", "moral", "fantasy"],
    ),
    BookTemplate(
        id="superhero-origin",
        title="Superhero Origin",
        description="How an ordinary person gains extraordinary powers",
        genre="adventure",
        audience="young-adult",
        recommended_size="medium",
        prompt=(
            "Write a superhero origin story with:\n"
            "- An ordinary character who gains unexpected powers\n"
            "- The discovery of, and training with, those powers\n"
            "- A villain or threat that must be faced\n"
            "- Conflict between normal life and a hero's responsibilities\n"
            "- Allies who help along the way\n"
            "- A thrilling final battle"
        ),
        tags=["powers", "hero", "responsibility", "action"],
    ),
    BookTemplate(
        id="time-travel",
        title="Time Travel",
        description="Adventures across time with paradoxes and consequences",
        genre="science-fiction",
        audience="adult",
        recommended_size="medium",
        prompt=(
            "Write a time-travel story with:\n"
            "- A device or ability that allows travel through time\n"
            "- Several historical periods visited\n"
            "- Temporal paradoxes and unexpected consequences\n"
            "- Characters from different eras\n"
            "- Decisions that change the timeline\n"
            "- A moral dilemma about interfering with the past"
        ),
        tags=["time", "history", "paradox", "adventure"],
    ),
    BookTemplate(
        id="magic-school",
        title="Magic School",
        description="Young apprentices' adventures at a school of magic",
        genre="fantasy",
        audience="young-adult",
        recommended_size="large",
        prompt=(
            "Write a story set in a school of magic with:\n"
            "- Young students learning spells and potions\n"
            "- Eccentric, wise teachers\n"
            "- Friendships, rivalries and school competitions\n"
            "- Mysteries and secrets hidden in the school\n"
            "- Magical threats that must be confronted\n"
            "- Personal growth and the discovery of talents"
        ),
        tags=["school", "magic", "friendship", "learning"],
    ),
    BookTemplate(
        id="detective-noir",
        title="Detective Noir",
        description="Detective stories set in dark urban landscapes",
        genre="thriller",
        audience="adult",
        recommended_size="medium",
        prompt=(
            "Write a noir story with:\n"
            "- A cynical, hardened detective\n"
            "- A big city full of shadows and secrets\n"
            "- A mysterious femme fatale\n"
            "- Corruption and crime behind the scenes of power\n"
            "- Sharp dialogue and a melancholy atmosphere\n"
            "- An ambiguous or surprising ending"
        ),
        tags=["noir", "detective", "city", "mystery"],
    ),
    BookTemplate(
        id="animal-adventure",
        title="Animal Adventure",
        description="Exciting journeys led by animal heroes",
        genre="adventure",
        audience="children",
        recommended_size="small",
        prompt=(
            "Write an adventure with animals as the main characters:\n"
            "- A group of animal friends on a mission\n"
            "- A natural setting (forest, savanna or ocean)\n"
            "- Natural challenges and real dangers\n"
            "- Teamwork and cooperation\n"
            "- Values such as friendship, courage and perseverance\n"
            "- A happy, comforting ending"
        ),
        tags=["animals", "nature", "friendship", "adventure"],
    ),
)


def get_template(template_id: str) -> BookTemplate | None:
    return next((t for t in TEMPLATES if t.id == template_id), None)


def by_genre(genre: str) -> List[BookTemplate]:
    return [t for t in TEMPLATES if t.genre == genre]


def by_audience(audience: str) -> List[BookTemplate]:
    return [t for t in TEMPLATES if t.audience == audience]


def random_template(rng: random.Random | None = None) -> BookTemplate:
    return (rng or random).choice(TEMPLATES)


def search(query: str) -> List[BookTemplate]:
    """Case-insensitive match on title, description or any tag."""
    q = query.lower()
    return [
        t for t in TEMPLATES
        if q in t.title.lower()
        or q in t.description.lower()
        or any(q in tag.lower() for tag in t.tags)
    ]
