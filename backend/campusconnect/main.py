import logging
from typing import Literal, Optional

import socketio
import uvicorn
from fastapi import Body, Depends, FastAPI, File, Form, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from . import auth as _auth_module
from .config import Settings, configure_logging, get_settings
from .context import AppContext
from .database import get_db, init_db, make_engine, make_session_factory
from .errors import InvalidInput, register_error_handlers
from .photos import PhotoStore
from .presence import Notifier, PresenceRegistry, SocketIONotifier
from .realtime import RealtimeGateway
from .schemas import (
    Conversation,
    DeleteUserResult,
    EditedMessage,
    FriendDeleteResult,
    FriendList,
    FriendRequestCreate,
    FriendRequestUpdate,
    LoginResult,
    MessageCreate,
    MessageEdit,
    ProfileList,
    ProfileRead,
    ProfileResult,
    ProfileUpdate,
    RegisterResult,
    RelationshipRead,
    RelationshipResult,
    ReportCreate,
    ReportList,
    ReportRead,
    ReportResult,
    SentMessage,
    UploadResult,
    UserCreate,
    UserLogin,
    UserUpdate,
)
from .search import MessageIndex

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def create_app(
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    index: Optional[MessageIndex] = None,
) -> FastAPI:
    """Build the FastAPI app, its socket.io server and the shared context.

    ``notifier`` and ``index`` replace the live implementations (tests).
    """
    settings = settings or get_settings()

    # --- Initialize DB ---
    engine = make_engine(settings.database_url)
    init_db(engine)

    sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=settings.cors_origins)
    presence = PresenceRegistry()
    context = AppContext(
        settings=settings,
        engine=engine,
        session_factory=make_session_factory(engine),
        presence=presence,
        notifier=notifier or SocketIONotifier(sio, presence),
        photos=PhotoStore(settings.upload_dir, settings.max_upload_bytes),
        index=index or MessageIndex(settings.search_service_url),
    )

    # --- FastAPI + CORS setup ---
    app = FastAPI(title="CampusConnect API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.state.context = context
    app.state.sio = sio

    gateway = RealtimeGateway(context)
    gateway.register(sio)
    app.state.gateway = gateway

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/", tags=["root"])
    async def read_root():
        return {"message": "CampusConnect API"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # --- USERS ---
    @app.post("/register/user", response_model=RegisterResult, status_code=status.HTTP_201_CREATED)
    def register_user(
        user: UserCreate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        account = ctx.accounts(db).register(
            user.first_name, user.last_name, user.email, user.password, user.sexe
        )
        return {"message": "User registered", "userId": account.id}

    @app.post("/login/user", response_model=LoginResult)
    def login_user(
        creds: UserLogin,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        account, profile = ctx.accounts(db).authenticate(creds.email, creds.password)
        settings = ctx.settings
        token = _auth_module.create_access_token(
            {"sub": account.id},
            settings.secret_key,
            settings.algorithm,
            settings.access_token_expire_minutes,
        )
        return {
            "message": "Logged in",
            "profile": ProfileRead.model_validate(profile) if profile else None,
            "accessToken": token,
            "tokenType": "bearer",
        }

    @app.put("/user/{user_id}")
    def update_user(
        user_id: str,
        changes: UserUpdate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        ctx.accounts(db).update_account(user_id, email=changes.email, password=changes.password)
        return {"message": "User updated"}

    @app.delete("/delete/user/{user_id}", response_model=DeleteUserResult)
    async def delete_user(
        user_id: str,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        counts = await ctx.accounts(db).delete_account(user_id)
        return {"message": "User and related data deleted", **counts}

    # --- PROFILES ---
    @app.get("/profiles/user/{user_id}", response_model=ProfileResult)
    def read_profile(
        user_id: str,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        profile = ctx.accounts(db).get_profile(user_id)
        return {"message": "Profile found", "profile": ProfileRead.model_validate(profile)}

    @app.put("/profiles/user/{user_id}", response_model=ProfileResult)
    def update_profile(
        user_id: str,
        changes: ProfileUpdate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        fields = changes.model_dump(exclude_unset=True, exclude={"interests"})
        profile = ctx.accounts(db).update_profile(user_id, fields, interests=changes.interests)
        return {"message": "Profile updated", "profile": ProfileRead.model_validate(profile)}

    @app.get("/profiles/users", response_model=ProfileList)
    def list_profiles(ctx: AppContext = Depends(get_context), db: Session = Depends(get_db)):
        profiles = ctx.accounts(db).list_profiles()
        return {
            "message": "Profiles found",
            "profiles": [ProfileRead.model_validate(p) for p in profiles],
        }

    # --- FRIENDS ---
    @app.post("/friends/user", response_model=RelationshipResult, status_code=status.HTTP_201_CREATED)
    async def send_friend_request(
        req: FriendRequestCreate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        rel = await ctx.relationships(db).send_request(req.sender_id, req.receiver_id)
        return {"message": "Friend request sent", "relationship": RelationshipRead.model_validate(rel)}

    @app.get("/friends/{friend_status}/user/{user_id}", response_model=FriendList)
    def list_friends(
        friend_status: Literal["accepted", "refused", "pending"],
        user_id: str,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        profiles = ctx.relationships(db).list_by_status(user_id, friend_status)
        return {
            "message": "Friends found" if profiles else "No friends found",
            "friends": [ProfileRead.model_validate(p) for p in profiles],
        }

    @app.put("/friends/user", response_model=RelationshipResult)
    def respond_friend_request(
        req: FriendRequestUpdate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        rel = ctx.relationships(db).update_status(req.sender_id, req.receiver_id, req.status)
        verb = "accepted" if rel.status == "accepted" else "refused"
        return {"message": f"Request {verb}", "relationship": RelationshipRead.model_validate(rel)}

    @app.delete("/friends/user", response_model=FriendDeleteResult)
    async def remove_friend(
        req: FriendRequestCreate = Body(...),
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        deleted = await ctx.relationships(db).delete_relationship(req.sender_id, req.receiver_id)
        return {"message": "Relationship and conversation deleted", "deletedMessagesCount": deleted}

    # --- MESSAGES ---
    @app.get("/messages/conversation/{user_a}/{user_b}", response_model=Conversation)
    def read_conversation(
        user_a: str,
        user_b: str,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        return {"message": "Messages found", "messages": ctx.messaging(db).get_conversation(user_a, user_b)}

    @app.get("/messages/search/{user_a}/{user_b}", response_model=Conversation)
    async def search_conversation(
        user_a: str,
        user_b: str,
        q: str = Query(..., min_length=1),
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        """Proxy through to the search service, mapped into MessageRead."""
        hits = await ctx.messaging(db).search_conversation(user_a, user_b, q)
        return {"message": "Messages found", "messages": hits}

    @app.post("/send", response_model=SentMessage)
    async def send_message(
        msg: MessageCreate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        payload = await ctx.messaging(db).send_message(msg.sender_id, msg.receiver_id, msg.content)
        return {"message": "Message sent", "newMessage": payload}

    @app.put("/edit/{message_id}", response_model=EditedMessage)
    async def edit_message(
        message_id: str,
        edit: MessageEdit,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        payload = await ctx.messaging(db).edit_message(message_id, edit.content)
        return {"message": "Message edited", "editedMessage": payload}

    # --- REPORTS ---
    @app.post("/signalement", response_model=ReportResult, status_code=status.HTTP_201_CREATED)
    def create_report(
        report: ReportCreate,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        created = ctx.reports(db).create(report.reporter_id, report.reported_id, report.reason)
        return {"message": "Report recorded", "report": ReportRead.model_validate(created)}

    @app.get("/signalements", response_model=ReportList)
    def list_reports(ctx: AppContext = Depends(get_context), db: Session = Depends(get_db)):
        reports = ctx.reports(db).list_all()
        return {"message": "Reports found", "reports": [ReportRead.model_validate(r) for r in reports]}

    # --- PHOTOS ---
    @app.post("/upload", response_model=UploadResult)
    def upload_photo(
        file: Optional[UploadFile] = File(None),
        user_id: Optional[str] = Form(None, alias="userId"),
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        if file is None or not file.filename:
            raise InvalidInput("No file received")
        if not user_id:
            raise InvalidInput("Missing field: userId")
        file_url = ctx.accounts(db).store_photo(user_id, file.file, file.filename)
        return {"success": True, "message": "Photo uploaded", "fileUrl": file_url}

    @app.get("/file/{user_id}")
    def read_photo(
        user_id: str,
        ctx: AppContext = Depends(get_context),
        db: Session = Depends(get_db),
    ):
        return FileResponse(ctx.accounts(db).photo_path(user_id))


def build_asgi_app(settings: Optional[Settings] = None):
    """FastAPI wrapped by socket.io, what uvicorn serves."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(build_asgi_app(settings), host=settings.host, port=settings.port)
