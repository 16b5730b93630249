"""Bundled data files."""

from importlib import resources

CONFIG_RESOURCE = "grab_config.yaml"


def read_config_resource(name: str = CONFIG_RESOURCE) -> bytes:
    """Read a bundled configuration resource.

    Raises:
        FileNotFoundError: No such resource is bundled
    """
    return resources.files(__name__).joinpath(name).read_bytes()
