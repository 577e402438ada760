import pytest


@pytest.fixture
def write_file(tmp_path):
    """Write bytes to a fresh file under tmp_path and return its path."""
    counter = [0]

    def _write(data, name=None):
        counter[0] += 1
        path = tmp_path / (name or f"apphost{counter[0]}")
        path.write_bytes(data)
        return path

    return _write
