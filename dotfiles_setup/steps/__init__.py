from .base import Item, ItemStep
from .step_00_customization import CustomizationStep
from .step_01_essentials import EssentialsStep
from .step_02_shell import ShellStep
from .step_03_nodejs import NodeJsStep
from .step_04_editors import EditorsStep
from .step_05_docker import DockerStep
from .step_06_java import JavaStep
from .step_07_dev_tools import DevToolsStep
from .step_08_applications import ApplicationsStep
from .step_09_extras import ExtrasStep


def build_steps():
    """The step registry, in execution order."""
    return [
        CustomizationStep(),
        EssentialsStep(),
        ShellStep(),
        NodeJsStep(),
        EditorsStep(),
        DockerStep(),
        JavaStep(),
        DevToolsStep(),
        ApplicationsStep(),
        ExtrasStep(),
    ]


__all__ = [
    "Item",
    "ItemStep",
    "build_steps",
    "CustomizationStep",
    "EssentialsStep",
    "ShellStep",
    "NodeJsStep",
    "EditorsStep",
    "DockerStep",
    "JavaStep",
    "DevToolsStep",
    "ApplicationsStep",
    "ExtrasStep",
]
