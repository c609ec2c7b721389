"""FastAPI application serving the reader pages and the admin authoring UI."""

from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Literal

from fastapi import Depends, FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.middleware.sessions import SessionMiddleware

from taleweaver.adapters.sqlite_narrative_store import SQLiteNarrativeStore
from taleweaver.api.forms import (
    chapter_payload,
    form_text,
    parse_chapter_with_choices,
    parse_command,
)
from taleweaver.config import SESSION_COOKIE_NAME, Settings, load_settings
from taleweaver.core.auth_gate import AuthGate
from taleweaver.core.authoring_workflow import AuthoringWorkflow, ChapterFormContext
from taleweaver.core.commands import ChapterDraft, ChoiceDraft, StoryDraft
from taleweaver.core.errors import (
    NoChaptersError,
    NotFoundError,
    PersistenceFailure,
    UnauthenticatedError,
    ValidationFailure,
)
from taleweaver.core.narrative_graph import NarrativeGraph
from taleweaver.core.reading_progress import ReadingProgressTracker
from taleweaver.core.story_catalog import StoryCatalog

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
READER_SESSION_KEY = "sessionId"
LOGIN_PATH = "/secret-admin-login"
CHOICE_ERRORS = {"invalid_choice": "Choice text is required and order must be a number."}

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Simple health payload used by probes."""

    status: Literal["ok"] = "ok"
    service: str = "taleweaver"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def _chapters_url(story_id: str) -> str:
    return f"/admin/story/{story_id}/chapters"


def _choices_url(story_id: str, chapter_id: str) -> str:
    return f"/admin/story/{story_id}/chapter/{chapter_id}/choices"


def reader_session_id(request: Request) -> str:
    """Return the stable per-browser reader id, assigning one on first visit."""
    session_id = request.session.get(READER_SESSION_KEY)
    if not session_id:
        session_id = secrets.token_hex(16)
        request.session[READER_SESSION_KEY] = session_id
    return str(session_id)


def create_app(db_path: Path | None = None, settings: Settings | None = None) -> FastAPI:
    """Create the web application with its store and services wired in."""
    effective_settings = settings if settings is not None else load_settings(db_path)
    store = SQLiteNarrativeStore(db_path=effective_settings.db_path)
    graph = NarrativeGraph(store)
    catalog = StoryCatalog(store, graph)
    tracker = ReadingProgressTracker(store)
    workflow = AuthoringWorkflow(store, graph)
    gate = AuthGate(store)
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        gate.ensure_admin(effective_settings.admin_username, effective_settings.admin_password)
        yield

    app = FastAPI(
        title="taleweaver",
        version="0.1.0",
        description="Interactive fiction reader with a single-admin authoring panel.",
        lifespan=lifespan,
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=effective_settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        max_age=effective_settings.session_max_age_seconds,
        same_site="lax",
        https_only=effective_settings.is_production,
    )

    logger.info(
        "app.start db_path=%s environment=%s",
        effective_settings.db_path,
        effective_settings.environment,
    )

    def render(
        request: Request,
        template: str,
        context: dict[str, Any],
        *,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        return templates.TemplateResponse(request, template, context, status_code=status_code)

    def require_admin(request: Request) -> str:
        if not gate.require_authenticated(request.session):
            logger.info("auth.gate_denied path=%s", request.url.path)
            raise UnauthenticatedError(request.url.path)
        return gate.session_username(request.session) or ""

    def chapter_form_response(
        request: Request,
        context: ChapterFormContext,
        username: str,
        *,
        error: str | None = None,
        form: dict[str, Any] | None = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        return render(
            request,
            "chapter_form.html",
            {
                "story": context.story,
                "chapter": context.chapter,
                "choices": context.choices,
                "next_number": context.next_number,
                "originating_choice": context.originating_choice,
                "source_chapter": context.source_chapter,
                "username": username,
                "error": error,
                "form": form or {},
            },
            status_code=status_code,
        )

    @app.exception_handler(UnauthenticatedError)
    async def unauthenticated_handler(request: Request, exc: UnauthenticatedError) -> Response:
        return _redirect(LOGIN_PATH)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> Response:
        logger.info("navigation.not_found path=%s entity=%s", request.url.path, exc.entity)
        return _redirect("/admin" if request.url.path.startswith("/admin") else "/")

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> Response:
        logger.error(
            "store.failure method=%s path=%s error=%s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return render(
            request,
            "error.html",
            {"detail": None if effective_settings.is_production else str(exc)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    # Reader

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request) -> HTMLResponse:
        return render(request, "index.html", {"stories": catalog.list_stories()})

    @app.get("/read/{story_id}", response_class=HTMLResponse)
    def read_story(
        request: Request,
        story_id: str,
        session_id: str = Depends(reader_session_id),
    ) -> Response:
        try:
            view = tracker.open_chapter(session_id, story_id)
        except NoChaptersError:
            story = catalog.get_story(story_id)
            return render(request, "empty_story.html", {"story": story})
        except NotFoundError:
            return _redirect("/")
        return render(
            request,
            "reader.html",
            {"story": view.story, "chapter": view.chapter, "choices": view.choices},
        )

    @app.post("/read/{story_id}/choice")
    def choose(
        story_id: str,
        next_chapter_id: str = Form(default="", alias="nextChapterId"),
        session_id: str = Depends(reader_session_id),
    ) -> RedirectResponse:
        tracker.advance(session_id, story_id, next_chapter_id)
        return _redirect(f"/read/{story_id}")

    @app.post("/read/{story_id}/restart")
    def restart(
        story_id: str,
        session_id: str = Depends(reader_session_id),
    ) -> RedirectResponse:
        tracker.restart(session_id, story_id)
        return _redirect(f"/read/{story_id}")

    # Authentication

    @app.get(LOGIN_PATH, response_class=HTMLResponse)
    def login_form(request: Request) -> Response:
        if gate.require_authenticated(request.session):
            return _redirect("/admin")
        return render(request, "login.html", {"error": None})

    @app.post("/login", response_class=HTMLResponse)
    def login(
        request: Request,
        username: str = Form(default=""),
        password: str = Form(default=""),
    ) -> Response:
        if not username or not password:
            return render(
                request,
                "login.html",
                {"error": "Please fill in username and password."},
                status_code=422,
            )
        user = gate.verify_credentials(username, password)
        if user is None:
            return render(
                request,
                "login.html",
                {"error": "Invalid username or password."},
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        gate.establish_session(request.session, user)
        return _redirect("/admin")

    @app.get("/logout")
    def logout(request: Request) -> RedirectResponse:
        gate.clear_session(request.session)
        return _redirect("/")

    # Admin: stories

    @app.get("/admin", response_class=HTMLResponse)
    def admin_home(request: Request, username: str = Depends(require_admin)) -> HTMLResponse:
        return render(
            request, "admin.html", {"stories": catalog.list_stories(), "username": username}
        )

    @app.get("/admin/story/new", response_class=HTMLResponse)
    def new_story_form(request: Request, username: str = Depends(require_admin)) -> HTMLResponse:
        return render(
            request,
            "story_form.html",
            {"story": None, "username": username, "error": None, "form": {}},
        )

    @app.get("/admin/story/edit/{story_id}", response_class=HTMLResponse)
    def edit_story_form(
        request: Request, story_id: str, username: str = Depends(require_admin)
    ) -> Response:
        try:
            story = catalog.get_story(story_id)
        except NotFoundError:
            return _redirect("/admin")
        return render(
            request,
            "story_form.html",
            {"story": story, "username": username, "error": None, "form": {}},
        )

    @app.post("/admin/story/save", response_class=HTMLResponse)
    def save_story(
        request: Request,
        story_id: str = Form(default="", alias="id"),
        title: str = Form(default=""),
        description: str = Form(default=""),
        cover_color: str = Form(default=""),
        cover_image: str = Form(default=""),
        genre: str = Form(default=""),
        story_status: str = Form(default="", alias="status"),
        username: str = Depends(require_admin),
    ) -> Response:
        submitted = {
            "title": title,
            "description": description,
            "cover_color": cover_color,
            "cover_image": cover_image,
            "genre": genre,
            "status": story_status,
        }
        try:
            command = parse_command(StoryDraft, submitted)
        except ValidationFailure as failure:
            existing = catalog.get_story(story_id) if story_id else None
            return render(
                request,
                "story_form.html",
                {
                    "story": existing,
                    "username": username,
                    "error": failure.message,
                    "form": {"id": story_id, **submitted},
                },
                status_code=422,
            )
        try:
            story = (
                catalog.update_story(story_id, command)
                if story_id
                else catalog.create_story(command)
            )
        except NotFoundError:
            return _redirect("/admin")
        return _redirect(_chapters_url(story.story_id))

    @app.post("/admin/story/delete/{story_id}")
    def delete_story(story_id: str, username: str = Depends(require_admin)) -> RedirectResponse:
        catalog.delete_story(story_id)
        return _redirect("/admin")

    # Admin: chapters

    @app.get("/admin/story/{story_id}/chapters", response_class=HTMLResponse)
    def list_chapters(
        request: Request, story_id: str, username: str = Depends(require_admin)
    ) -> Response:
        try:
            story = catalog.get_story(story_id)
        except NotFoundError:
            return _redirect("/admin")
        return render(
            request,
            "chapters.html",
            {
                "story": story,
                "chapters": graph.list_chapters_with_choices(story_id),
                "username": username,
            },
        )

    @app.get("/admin/story/{story_id}/chapter/new", response_class=HTMLResponse)
    def new_chapter_form(
        request: Request, story_id: str, username: str = Depends(require_admin)
    ) -> Response:
        try:
            context = workflow.prepare_chapter_form(story_id)
        except NotFoundError:
            return _redirect("/admin")
        return chapter_form_response(request, context, username)

    @app.get(
        "/admin/story/{story_id}/chapter/new-from-choice/{choice_id}",
        response_class=HTMLResponse,
    )
    def new_chapter_from_choice_form(
        request: Request,
        story_id: str,
        choice_id: str,
        username: str = Depends(require_admin),
    ) -> Response:
        try:
            context = workflow.prepare_chapter_form(story_id, originating_choice_id=choice_id)
        except NotFoundError:
            return _redirect(_chapters_url(story_id))
        return chapter_form_response(request, context, username)

    @app.get("/admin/story/{story_id}/chapter/edit/{chapter_id}", response_class=HTMLResponse)
    def edit_chapter_form(
        request: Request,
        story_id: str,
        chapter_id: str,
        username: str = Depends(require_admin),
    ) -> Response:
        try:
            context = workflow.prepare_edit_form(story_id, chapter_id)
        except NotFoundError as exc:
            target = "/admin" if exc.entity == "Story" else _chapters_url(story_id)
            return _redirect(target)
        return chapter_form_response(request, context, username)

    @app.post("/admin/story/{story_id}/chapter/save-with-choices", response_class=HTMLResponse)
    async def save_chapter_with_choices(
        request: Request,
        story_id: str,
        username: str = Depends(require_admin),
    ) -> Response:
        form = await request.form()
        try:
            command = parse_chapter_with_choices(form)
        except ValidationFailure as failure:
            originating = form_text(form, "choiceId").strip() or None
            try:
                context = await run_in_threadpool(
                    workflow.prepare_chapter_form, story_id, originating
                )
            except NotFoundError:
                return _redirect(_chapters_url(story_id))
            return chapter_form_response(
                request,
                context,
                username,
                error=failure.message,
                form={key: form_text(form, key) for key in form.keys()},
                status_code=422,
            )
        try:
            await run_in_threadpool(workflow.save_chapter_with_choices, story_id, command)
        except NotFoundError as exc:
            logger.info("authoring.save_rejected story_id=%s entity=%s", story_id, exc.entity)
        return _redirect(_chapters_url(story_id))

    @app.post("/admin/story/{story_id}/chapter/save", response_class=HTMLResponse)
    async def save_chapter(
        request: Request,
        story_id: str,
        username: str = Depends(require_admin),
    ) -> Response:
        form = await request.form()
        chapter_id = form_text(form, "id").strip() or None
        try:
            command = parse_command(ChapterDraft, chapter_payload(form))
        except ValidationFailure as failure:
            try:
                context = await run_in_threadpool(
                    (lambda: workflow.prepare_edit_form(story_id, chapter_id))
                    if chapter_id
                    else (lambda: workflow.prepare_chapter_form(story_id))
                )
            except NotFoundError:
                return _redirect(_chapters_url(story_id))
            return chapter_form_response(
                request,
                context,
                username,
                error=failure.message,
                form={key: form_text(form, key) for key in form.keys()},
                status_code=422,
            )
        try:
            chapter = await run_in_threadpool(workflow.save_chapter, story_id, chapter_id, command)
        except NotFoundError:
            return _redirect(_chapters_url(story_id))
        return _redirect(_choices_url(story_id, chapter.chapter_id))

    @app.post("/admin/story/{story_id}/chapter/delete/{chapter_id}")
    def delete_chapter(
        story_id: str, chapter_id: str, username: str = Depends(require_admin)
    ) -> RedirectResponse:
        graph.delete_chapter(chapter_id)
        return _redirect(_chapters_url(story_id))

    # Admin: choices

    @app.get("/admin/story/{story_id}/chapter/{chapter_id}/choices", response_class=HTMLResponse)
    def list_choices(
        request: Request,
        story_id: str,
        chapter_id: str,
        username: str = Depends(require_admin),
    ) -> Response:
        try:
            story = catalog.get_story(story_id)
        except NotFoundError:
            return _redirect("/admin")
        chapter = graph.get_chapter(chapter_id)
        if chapter is None:
            return _redirect(_chapters_url(story_id))
        return render(
            request,
            "choices.html",
            {
                "story": story,
                "chapter": chapter,
                "choices": graph.list_choices_ordered(chapter_id),
                "all_chapters": graph.list_chapters_ordered(story_id),
                "username": username,
                "error": CHOICE_ERRORS.get(request.query_params.get("error", "")),
            },
        )

    @app.post("/admin/story/{story_id}/chapter/{chapter_id}/choice/add")
    def add_choice(
        story_id: str,
        chapter_id: str,
        choice_text: str = Form(default=""),
        next_chapter_id: str = Form(default=""),
        order_number: str = Form(default=""),
        username: str = Depends(require_admin),
    ) -> RedirectResponse:
        try:
            command = parse_command(
                ChoiceDraft,
                {
                    "choice_text": choice_text,
                    "next_chapter_id": next_chapter_id,
                    "order_number": order_number.strip() or 0,
                },
            )
            graph.add_choice(chapter_id, command)
        except ValidationFailure as failure:
            logger.info("choice.rejected chapter_id=%s reason=%s", chapter_id, failure.message)
            return _redirect(f"{_choices_url(story_id, chapter_id)}?error=invalid_choice")
        except NotFoundError:
            return _redirect(_chapters_url(story_id))
        return _redirect(_choices_url(story_id, chapter_id))

    @app.post("/admin/story/{story_id}/chapter/{chapter_id}/choice/delete/{choice_id}")
    def delete_choice(
        story_id: str,
        chapter_id: str,
        choice_id: str,
        username: str = Depends(require_admin),
    ) -> RedirectResponse:
        graph.delete_choice(choice_id)
        return _redirect(_choices_url(story_id, chapter_id))

    return app


app = create_app()
