"""spring-init scaffolder: generate a project and sync its build descriptor.

Quick usage::

    from spring_init.scaffolder import BuildSynchronizer, ProjectInitializer

    handle = await ProjectInitializer(config).initialize(deps)
    BuildSynchronizer().sync(handle.root, config.maven_plugins)
"""

from spring_init.scaffolder.build_sync import BuildSynchronizer, declared_plugins
from spring_init.scaffolder.initializer import ProjectHandle, ProjectInitializer
from spring_init.scaffolder.templates import TemplateRenderer

__all__ = [
    "BuildSynchronizer",
    "ProjectHandle",
    "ProjectInitializer",
    "TemplateRenderer",
    "declared_plugins",
]
