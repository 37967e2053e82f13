"""CSRF token endpoint for forms and fetch clients."""

from fastapi import APIRouter, Depends, Request, Response

from storefront.api.dependencies import get_csrf_guard
from storefront.schemas.auth import CsrfTokenResponse
from storefront.services.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, CsrfGuard, CsrfTokenState

router = APIRouter(tags=["csrf"])


@router.get("/csrf", response_model=CsrfTokenResponse)
async def get_csrf_token(
    request: Request,
    response: Response,
    guard: CsrfGuard = Depends(get_csrf_guard),
) -> CsrfTokenResponse:
    """Return the session's CSRF token, issuing a new one if needed.

    The cookie copy and the returned copy are identical, as the double-submit
    check requires.
    """
    current = request.cookies.get(CSRF_COOKIE_NAME)
    if guard.token_state(current) is CsrfTokenState.ISSUED_VALID:
        return CsrfTokenResponse(csrf_token=current)

    token = guard.issue()
    response.set_cookie(value=token, **guard.cookie_params())
    response.headers[CSRF_HEADER_NAME] = token
    return CsrfTokenResponse(csrf_token=token)
