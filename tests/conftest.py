"""
Shared pytest fixtures for bracket contest tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset (skips threaded runs)
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from contest.engine import ContestEngine
from contest.repository import InMemoryRepository, YamlRepository


def make_field(region_size):
    """Contestant records with ids like 'r2s3' (region 2, seed 3)."""
    return [
        {'id': f"r{region}s{seed}", 'name': f"Region {region} Seed {seed}", 'region': region, 'seed': seed}
        for region in (1, 2, 3, 4)
        for seed in range(1, region_size + 1)
    ]


@pytest.fixture
def four_field():
    """Smallest legal field: one contestant per region."""
    return make_field(1)


@pytest.fixture
def eight_field():
    """Two contestants per region; round 1 is the Quarterfinals."""
    return make_field(2)


@pytest.fixture
def sixteen_field():
    """Four contestants per region."""
    return make_field(4)


@pytest.fixture
def thirty_two_field():
    """Eight contestants per region."""
    return make_field(8)


@pytest.fixture
def engine():
    """Engine over an in-memory repository."""
    return ContestEngine(InMemoryRepository())


@pytest.fixture
def yaml_engine(tmp_path):
    """Engine persisting bracket.yaml files under a temporary directory."""
    return ContestEngine(YamlRepository(str(tmp_path), lock_timeout=5))


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the Flask app at a temporary data directory."""
    import app as app_module

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    return tmp_path


@pytest.fixture
def client(temp_data_dir):
    """Create a test client bound to the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def contestants_file(temp_data_dir):
    """contestants.yaml for tournament 'demo', as a region -> names mapping."""
    tournament_dir = temp_data_dir / "demo"
    tournament_dir.mkdir(parents=True, exist_ok=True)
    path = tournament_dir / "contestants.yaml"
    path.write_text(yaml.dump({
        1: ['Tea', 'Coffee'],
        2: ['Cats', 'Dogs'],
        3: ['Pizza', 'Tacos'],
        4: ['Summer', 'Winter'],
    }, default_flow_style=False))
    return path
