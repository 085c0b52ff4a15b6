"""
Dependency injection container using dependency-injector.
Holds the external integration clients as lazily created singletons.
"""

from typing import Optional

from dependency_injector import containers, providers

from app.core.config import reload_settings, settings
from app.core.integrations.bank_link.plaid_client import PlaidClient
from app.core.integrations.email.mailer import Mailer
from app.core.integrations.payments.base import PaymentGateway
from app.core.integrations.payments.stripe_gateway import StripeGateway
from app.services.health_service import HealthService
from app.controllers.health_controller import HealthController


def build_payment_gateway(config: dict) -> Optional[PaymentGateway]:
    """Stripe gateway, or None when no secret key is configured."""
    if not config.get("stripe_secret_key"):
        return None
    return StripeGateway(
        api_key=config["stripe_secret_key"],
        webhook_secret=config.get("stripe_webhook_secret") or "",
        fee_percent=settings.PLATFORM_FEE_PERCENT,
        frontend_url=settings.FRONTEND_URL,
        plan_prices_minor=settings.PLAN_PRICES_MINOR,
        timeout=settings.PROCESSOR_TIMEOUT_SECONDS,
        webhook_tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    )


def build_mailer(config: dict) -> Mailer:
    return Mailer(
        host=config.get("smtp_host") or "",
        port=settings.SMTP_PORT,
        username=config.get("smtp_user") or "",
        password=config.get("smtp_password") or "",
        from_address=settings.FROM_EMAIL,
        use_tls=settings.SMTP_USE_TLS,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )


def build_bank_link_client(config: dict) -> PlaidClient:
    return PlaidClient(
        client_id=config.get("plaid_client_id") or "",
        secret=config.get("plaid_secret") or "",
        environment=settings.PLAID_ENVIRONMENT,
        webhook_url=settings.PLAID_WEBHOOK_URL,
        timeout=settings.PLAID_TIMEOUT_SECONDS,
    )


class Container(containers.DeclarativeContainer):
    """Dependency injection container."""

    # Configuration
    config = providers.Configuration()

    # External integrations
    payment_gateway = providers.Singleton(build_payment_gateway, config)
    mailer = providers.Singleton(build_mailer, config)
    bank_link_client = providers.Singleton(build_bank_link_client, config)

    # Services
    health_service = providers.Singleton(
        HealthService,
    )

    # Controllers
    health_controller = providers.Factory(
        HealthController,
        health_service=health_service,
    )


def integration_config() -> dict:
    return {
        "stripe_secret_key": settings.STRIPE_SECRET_KEY,
        "stripe_webhook_secret": settings.STRIPE_WEBHOOK_SECRET,
        "smtp_host": settings.SMTP_HOST,
        "smtp_user": settings.SMTP_USER,
        "smtp_password": settings.SMTP_PASSWORD,
        "plaid_client_id": settings.PLAID_CLIENT_ID,
        "plaid_secret": settings.PLAID_SECRET,
    }


# Global container instance
_container: Container = None


def get_container() -> Container:
    """Get the global dependency injection container."""
    global _container
    if _container is None:
        _container = Container()
        _container.config.from_dict(integration_config())
    return _container


async def reset_integrations() -> None:
    """
    Re-read settings and drop cached integration clients so the next use
    picks up rotated credentials. The old bank-link client's HTTP session is
    closed before it is dropped.
    """
    container = get_container()
    await container.bank_link_client().close()

    reload_settings()
    container.config.from_dict(integration_config())
    container.payment_gateway.reset()
    container.mailer.reset()
    container.bank_link_client.reset()


def get_payment_gateway() -> Optional[PaymentGateway]:
    """FastAPI dependency for the payment gateway."""
    return get_container().payment_gateway()


def get_mailer() -> Mailer:
    """FastAPI dependency for the mailer."""
    return get_container().mailer()


def get_bank_link_client() -> PlaidClient:
    """FastAPI dependency for the bank-linking client."""
    return get_container().bank_link_client()
