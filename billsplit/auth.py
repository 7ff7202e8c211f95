import os, logging
from fastapi import APIRouter, Request, HTTPException
from fastapi.responses import RedirectResponse
from authlib.integrations.starlette_client import OAuth
from sqlmodel import Session, select
from billsplit.db import engine
from billsplit.models.user import User
from billsplit.services.split_service import link_external_participants

router = APIRouter()
oauth = OAuth()
oauth.register(
    name='google',
    client_id=os.environ.get("GOOGLE_CLIENT_ID"),
    client_secret=os.environ.get("GOOGLE_CLIENT_SECRET"),
    server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
    client_kwargs={'scope': 'openid email profile'},
)
log = logging.getLogger(__name__)

@router.get("/login")
async def login(request: Request):
    redirect_uri = request.url_for('auth_callback')
    return await oauth.google.authorize_redirect(request, str(redirect_uri))

@router.get("/auth", name="auth_callback")
async def auth(request: Request):
    log.debug("Starting /auth callback")
    try:
        token = await oauth.google.authorize_access_token(request)
    except Exception as e:
        log.exception("authorize_access_token() failed: %s", e)
        raise HTTPException(status_code=500, detail="OAuth token exchange failed; check server logs")

    userinfo = token.get("userinfo") if isinstance(token, dict) else None
    if not userinfo:
        try:
            resp = await oauth.google.get("userinfo", token=token)
            userinfo = resp.json()
        except Exception as e:
            log.exception("OAuth2 userinfo lookup failed: %s", e)
            raise HTTPException(status_code=500, detail="Authentication failed; check server logs")

    if not userinfo or not isinstance(userinfo, dict):
        raise HTTPException(status_code=500, detail="Authentication failed: invalid userinfo")

    google_id = userinfo.get("sub") or userinfo.get("id")
    email = (userinfo.get("email") or "").lower() or None
    name = userinfo.get("name") or email or "GoogleUser"

    with Session(engine) as s:
        user = upsert_google_user(s, google_id, email, name)
        # people added to splits by email before they had an account
        link_external_participants(s, user)
        request.session['user'] = {"id": user.id, "name": user.name, "email": user.email}
    return RedirectResponse(url="/")

def upsert_google_user(s: Session, google_id, email, name) -> User:
    user = None
    if google_id:
        user = s.exec(select(User).where(User.google_id == google_id)).first()
    if not user and email:
        user = s.exec(select(User).where(User.email == email)).first()
    if not user:
        user = User(name=name, email=email, google_id=google_id)
        s.add(user); s.commit(); s.refresh(user)
        log.info("new user %s signed up", user.id)
        return user
    changed = False
    if google_id and user.google_id != google_id:
        user.google_id = google_id; changed = True
    if email and user.email != email:
        user.email = email; changed = True
    if user.name != name:
        user.name = name; changed = True
    if changed:
        s.add(user); s.commit(); s.refresh(user)
    return user

@router.get("/logout")
def logout(request: Request):
    request.session.pop('user', None)
    return RedirectResponse(url="/")
