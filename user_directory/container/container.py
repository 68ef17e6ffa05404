"""
Dependency injection container implementation.
Wires key provider -> codec -> repository, plus the chat service.
"""

import inspect
from typing import Dict, Any, TypeVar, Type, Optional, Callable
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ..interfaces.encryption_interface import IFieldCodec
from ..interfaces.repository_interface import IUserRepository
from ..core.config import Settings, settings as default_settings
from ..core.database import engine as default_engine, build_session_factory
from ..core.encryption import KeyProvider, FernetFieldCodec, configure_codec, reset_codec
from ..repositories.user_repository import UserRepository
from ..services.chat_service import ChatService

logger = structlog.get_logger()

T = TypeVar('T')


class Container:
    """Dependency injection container."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[AsyncEngine] = None
    ):
        self.settings = settings or default_settings
        self.engine = engine or default_engine
        self.session_factory = build_session_factory(self.engine)
        self._singletons: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[], Any]] = {}
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def register_singleton(self, interface: Type[T], implementation: Type[T]) -> None:
        """
        Register a singleton service implementation.

        Args:
            interface: Interface type
            implementation: Implementation type
        """
        key = interface.__name__
        self._singletons[key] = implementation
        logger.debug("Registered singleton", interface=key, implementation=implementation.__name__)

    def register_factory(self, interface: Type[T], factory: Callable[[], T]) -> None:
        """
        Register a factory function for creating service instances.

        Args:
            interface: Interface type
            factory: Factory function
        """
        key = interface.__name__
        self._factories[key] = factory
        logger.debug("Registered factory", interface=key, factory=getattr(factory, "__name__", repr(factory)))

    def register_instance(self, interface: Type[T], instance: T) -> None:
        """
        Register a specific instance for an interface.

        Args:
            interface: Interface type
            instance: Instance to register
        """
        key = interface.__name__
        self._singletons[key] = instance
        logger.debug("Registered instance", interface=key, instance=type(instance).__name__)

    def get(self, interface: Type[T]) -> T:
        """
        Get service instance by interface type.

        Args:
            interface: Interface type to resolve

        Returns:
            Service instance

        Raises:
            ValueError: If service is not registered
        """
        key = getattr(interface, "__name__", None)
        if key is None:
            raise ValueError(f"Service not registered: {interface!r}")

        if key in self._factories:
            return self._factories[key]()

        if key in self._singletons:
            singleton = self._singletons[key]
            if not isinstance(singleton, type):
                return singleton

            instance = self._create_instance(singleton)
            self._singletons[key] = instance
            return instance

        raise ValueError(f"Service not registered: {key}")

    def _create_instance(self, implementation_class: Type[T]) -> T:
        """
        Create instance with dependency injection.

        Constructor parameters are resolved by their annotation; parameters
        that cannot be resolved fall back to their default value.
        """
        signature = inspect.signature(implementation_class.__init__)
        parameters = list(signature.parameters.values())[1:]

        dependencies = {}
        for param in parameters:
            if param.annotation is inspect.Parameter.empty:
                continue
            try:
                dependencies[param.name] = self.get(param.annotation)
            except ValueError as e:
                if param.default is not inspect.Parameter.empty:
                    continue
                logger.error(
                    "Failed to resolve dependency",
                    class_name=implementation_class.__name__,
                    parameter=param.name,
                    error=str(e)
                )
                raise

        instance = implementation_class(**dependencies)
        logger.debug(
            "Created instance with dependencies",
            class_name=implementation_class.__name__,
            dependencies=list(dependencies.keys())
        )
        return instance

    async def initialize(self) -> None:
        """Initialize the container and configure default services."""
        if self._initialized:
            return

        key_provider = KeyProvider.from_settings(self.settings)
        key_provider.initialize()
        self.register_instance(KeyProvider, key_provider)

        self.register_singleton(IFieldCodec, FernetFieldCodec)
        configure_codec(self.get(IFieldCodec))

        self.register_instance(async_sessionmaker, self.session_factory)
        self.register_factory(
            IUserRepository,
            lambda: UserRepository(
                codec=self.get(IFieldCodec),
                session_factory=self.get(async_sessionmaker),
                decrypt_concurrency=self.settings.DECRYPT_MAX_CONCURRENCY
            )
        )

        if self.settings.CHAT_ENABLED:
            self.register_instance(ChatService, ChatService.from_settings(self.settings))

        self._initialized = True
        logger.info("Dependency injection container initialized successfully")

    async def cleanup(self) -> None:
        """Cleanup container resources."""
        for key, instance in list(self._singletons.items()):
            cleanup = getattr(instance, "cleanup", None)
            if isinstance(instance, type) or cleanup is None:
                continue
            try:
                result = cleanup()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Failed to cleanup service", service=key, error=str(e))

        reset_codec()
        self._initialized = False
        logger.info("Container cleanup completed")

    def get_registration_info(self) -> Dict[str, str]:
        """Get information about registered services."""
        info = {}

        for key, impl in self._singletons.items():
            if isinstance(impl, type):
                info[key] = f"Singleton: {impl.__name__}"
            else:
                info[key] = f"Instance: {type(impl).__name__}"

        for key in self._factories:
            info[key] = "Factory"

        return info


# Global container instance
_container: Optional[Container] = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Optional[Container]) -> None:
    """Replace the global container (used by the application factory and tests)."""
    global _container
    _container = container


async def initialize_container() -> Container:
    """Initialize and return the global container."""
    container = get_container()
    await container.initialize()
    return container


async def cleanup_container() -> None:
    """Cleanup the global container."""
    global _container
    if _container:
        await _container.cleanup()
        _container = None
