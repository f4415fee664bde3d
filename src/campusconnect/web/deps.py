from typing import Annotated, cast

from fastapi import Depends
from starlette.requests import HTTPConnection

from campusconnect.app import App
from campusconnect.core.modules.session.models import Identity, PrincipalKind
from campusconnect.web.tokens import RequestTokenResolver


async def get_app(connection: HTTPConnection) -> App:
    return cast(App, connection.app.state.app)


async def get_token_resolver(connection: HTTPConnection) -> RequestTokenResolver:
    return cast(RequestTokenResolver, connection.app.state.token_resolver)


async def get_identity(
    connection: HTTPConnection,
    app: Annotated[App, Depends(get_app)],
    resolver: Annotated[RequestTokenResolver, Depends(get_token_resolver)],
) -> Identity:
    """Verify the session token the request carries, whatever its kind."""
    hint = resolver.role_hint(connection)
    return await app.authenticate(resolver.resolve(connection, hint) or resolver.bearer(connection), hint)


async def get_member(
    connection: HTTPConnection,
    app: Annotated[App, Depends(get_app)],
    resolver: Annotated[RequestTokenResolver, Depends(get_token_resolver)],
) -> Identity:
    # Role cookies first; API clients send only the Authorization header
    token = resolver.resolve(connection, PrincipalKind.MEMBER) or resolver.bearer(connection)
    return await app.authenticate(token, PrincipalKind.MEMBER)


async def get_admin(
    connection: HTTPConnection,
    app: Annotated[App, Depends(get_app)],
    resolver: Annotated[RequestTokenResolver, Depends(get_token_resolver)],
) -> Identity:
    token = resolver.resolve(connection, PrincipalKind.ADMINISTRATOR) or resolver.bearer(connection)
    return await app.authenticate(token, PrincipalKind.ADMINISTRATOR)


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
TokenResolverDep = Annotated[RequestTokenResolver, Depends(get_token_resolver)]
IdentityDep = Annotated[Identity, Depends(get_identity)]
MemberDep = Annotated[Identity, Depends(get_member)]
AdminDep = Annotated[Identity, Depends(get_admin)]
