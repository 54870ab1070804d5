"""Club directory: display names, states and the regional database each club lives in."""

from dataclasses import dataclass

from libs.common.config import get_settings
from libs.db.config import require_url


@dataclass(frozen=True)
class Club:
    code: str
    name: str
    state: str
    region: str

    @property
    def is_new_mexico(self) -> bool:
        return self.state == "NM"


CLUBS: dict[str, Club] = {
    club.code: club
    for club in (
        Club("201", "Highpoint Sports & Wellness", "NM", "NM"),
        Club("202", "Midtown Sports & Wellness", "NM", "NM"),
        Club("203", "Downtown Sports & Wellness", "NM", "NM"),
        Club("204", "Del Norte Sports & Wellness", "NM", "NM"),
        Club("205", "Riverpoint Sports & Wellness", "NM", "NM"),
        Club("252", "Colorado Athletic Club - DTC", "CO", "DNV"),
        Club("253", "Colorado Athletic Club - Downtown", "CO", "DNV"),
        Club("254", "Colorado Athletic Club - Tabor Center", "CO", "DNV"),
        Club("255", "TEST Club", "CO", "DNV"),
        Club("256", "Colorado Athletic Club - Inverness", "CO", "DNV"),
        Club("257", "Colorado Athletic Club - Flatirons", "CO", "DNV"),
        Club("292", "Colorado Athletic Club - Monaco", "CO", "DNV"),
        Club("375", "Mid-America Club", "MO", "MAC"),
    )
}

REGION_URL_SETTINGS = {
    "NM": "NM_DATABASE_URL",
    "DNV": "DNV_DATABASE_URL",
    "MAC": "MAC_DATABASE_URL",
}


def normalize_club_code(value: object) -> str:
    """Zero-pad a club id to the 3-character form used everywhere (``7`` → ``"007"``)."""
    raw = str(value).strip()
    if not raw.isdigit() or len(raw) > 3:
        raise ValueError(f"Invalid club ID format: {value!r}")
    return raw.zfill(3)


def get_club(code: str) -> Club:
    try:
        return CLUBS[normalize_club_code(code)]
    except KeyError:
        raise LookupError(f"Invalid club ID: {code}") from None


def database_url_for_club(code: str) -> str:
    """Resolve the regional database URL for a club."""
    club = get_club(code)
    setting_name = REGION_URL_SETTINGS[club.region]
    return require_url(getattr(get_settings(), setting_name), setting_name)


def first_club_per_region() -> dict[str, str]:
    """One club code per region, used to reach each regional database."""
    firsts: dict[str, str] = {}
    for club in CLUBS.values():
        firsts.setdefault(club.region, club.code)
    return firsts
