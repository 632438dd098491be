"""
Per-tournament settings stored in settings.yaml.
"""
import os
from typing import Dict

import yaml

from contest.errors import ValidationError
from contest.models import REGIONS
from contest.repository import SETTINGS_FILENAME
from contest.tiebreak import TieBreakPolicy


def get_default_settings() -> Dict:
    """Return default settings."""
    return {
        'tournament_name': 'Popularity Contest',
        'region_labels': {region: f"Region {region}" for region in REGIONS},
        # None: tied matchups wait for an explicit operator decision
        'tie_break_policy': None,
    }


def parse_region_labels(value) -> Dict[int, str]:
    """
    Read a region -> label mapping, keyed by region number.

    Keys may be ints or numeric strings ('2' from JSON). Raises
    ValidationError for anything that is not a mapping over regions 1-4.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("region_labels must be a mapping of region number to label")
    labels = {}
    for key, label in value.items():
        try:
            region = int(key) if not isinstance(key, bool) else None
        except (TypeError, ValueError):
            region = None
        if region not in REGIONS or str(region) != str(key).strip():
            raise ValidationError(f"Unknown region {key!r} in region_labels; regions are 1-4")
        labels[region] = str(label)
    return labels


def load_settings(tournament_dir: str) -> Dict:
    """Load settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    path = os.path.join(tournament_dir, SETTINGS_FILENAME)
    if not os.path.exists(path):
        return defaults
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not data:
        return defaults
    if not isinstance(data, dict):
        raise ValidationError(f"{SETTINGS_FILENAME} must hold a mapping of settings")
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
    labels = dict(defaults['region_labels'])
    labels.update(parse_region_labels(data.get('region_labels')))
    data['region_labels'] = labels
    # Fail early on a policy the engine would reject later
    TieBreakPolicy.parse(data['tie_break_policy'])
    return data


def save_settings(tournament_dir: str, settings: Dict):
    """Save settings to YAML file."""
    os.makedirs(tournament_dir, exist_ok=True)
    with open(os.path.join(tournament_dir, SETTINGS_FILENAME), 'w', encoding='utf-8') as f:
        yaml.dump(settings, f, default_flow_style=False)
