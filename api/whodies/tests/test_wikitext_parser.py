from __future__ import annotations

from whodies.ingestion.fandom import victims_section
from whodies.ingestion.wikitext import extract_killer, is_ambiguous, parse_victims, strip_markup
from whodies.tests.utils import JAWS_WIKITEXT

FIXTURE = """* <u>'''Kane'''</u> - Killed by the [[Xenomorph|Chestburster]] bursting from his chest
* <u>''Brett''</u> - Dragged away by the Xenomorph in the landing leg bay
** Last seen screaming
** Body never recovered
* [[Dallas]] - Killed by the Xenomorph in the air ducts off-screen
* <u>Ash</u> - Decapitated by Parker with a fire extinguisher
* Lambert - Killed at the hands of the Xenomorph (alongside Parker)
Some trailing prose that is not a bullet - and should be ignored
"""


def test_parses_one_death_per_top_level_bullet() -> None:
    deaths = parse_victims(FIXTURE)

    assert [d.character for d in deaths] == ["Kane", "Brett", "Dallas", "Ash", "Lambert"]
    for death in deaths:
        for field in (death.character, death.cause, death.context):
            assert "''" not in field
            assert "[[" not in field and "]]" not in field
            assert "<u>" not in field
        assert death.time_of_death == "Unknown"


def test_sub_bullets_join_into_context() -> None:
    brett = parse_victims(FIXTURE)[1]
    assert brett.context == "Last seen screaming; Body never recovered"
    assert brett.cause == "Dragged away by the Xenomorph in the landing leg bay"


def test_killer_and_ambiguity_heuristics() -> None:
    kane, brett, dallas, ash, lambert = parse_victims(FIXTURE)

    assert kane.killed_by == "the Chestburster bursting from his chest"
    assert brett.killed_by == "the Xenomorph in the landing leg bay"
    assert dallas.killed_by == "the Xenomorph in the air ducts"
    assert dallas.is_ambiguous
    assert ash.killed_by == "Parker"
    assert lambert.killed_by == "the Xenomorph"
    assert not kane.is_ambiguous


def test_extract_killer_defaults_and_trims_years() -> None:
    assert extract_killer("Died of old age") == "N/A"
    assert extract_killer("Shot by Tom in 1944 during the raid") == "Tom"


def test_is_ambiguous_markers() -> None:
    assert is_ambiguous("Death is only mentioned")
    assert is_ambiguous("Unknown if he survived the blast")
    assert not is_ambiguous("Stabbed in the back")


def test_strip_markup_handles_links_and_quotes() -> None:
    assert strip_markup("* '''[[Quint]]''' <u>the hunter</u>") == "Quint the hunter"


def test_victims_section_feeds_parser() -> None:
    page = "Intro text.\n" + JAWS_WIKITEXT + "\n== Trivia ==\n* Not a death - ignore me"
    section = victims_section(page)

    assert section is not None
    assert "Trivia" not in section
    deaths = parse_victims(section)
    assert len(deaths) == 4
    assert deaths[0].character == "Chrissie Watkins"
    assert deaths[0].is_ambiguous
    assert deaths[1].context == "Killed while swimming on a raft"
