#!/usr/bin/env python3
"""Web front end for memo-app - accessible in browser.

Authentication is delegated: an upstream identity proxy sets the user id
header (``MEMO_AUTH_HEADER``) and forwards the session token as a bearer
Authorization header. Requests without it are anonymous.
"""

from __future__ import annotations

import sys
import uuid
from typing import Any

from flask import Flask, current_app, jsonify, redirect, render_template, request, session, url_for
from jinja2 import DictLoader

from config import ALL_CATEGORIES, CONFIG, LANGUAGES, VALID_CATEGORIES
from drafts import ReconcileAction, SessionDraftRepository, SessionStorage, ViewCache, close_editor, editor_closed
from editor import DISCARD_PROMPT, RESTORE_PROMPT, MemoEditor
from errors import MemoAppError
from identity import IdentityClient
from listing import OWNER_LIST, PUBLIC_LIST, MemoLister, MemoQuery, Scope, get_page_links
from profiles import ProfileService
from rendering import render_markdown
from session import SessionContext
from store import Datastore, get_datastore
from templates import TEMPLATES
from viewer import MemoViewer
from webhooks import handle_identity_webhook


# =============================================================================
# Request helpers
# =============================================================================


def get_store() -> Datastore:
    return current_app.extensions["memo_store"]


def current_session() -> SessionContext:
    """Session context for this request, built from the identity proxy headers."""
    user_id = request.headers.get(CONFIG.auth_header) or None
    authorization = request.headers.get("Authorization", "")
    token = authorization.removeprefix("Bearer ").strip() or None
    return SessionContext(user_id=user_id, token_getter=lambda: token)


def browser_session_id() -> str:
    """Opaque per-browser id; the only session data the cookie carries."""
    return session.setdefault("sid", uuid.uuid4().hex)


def session_storage() -> SessionStorage:
    return SessionStorage(get_store(), browser_session_id())


def session_drafts() -> SessionDraftRepository:
    return SessionDraftRepository(session_storage())


def view_cache() -> ViewCache:
    return ViewCache(session_storage())


def form_snapshot(data: Any, checkboxes_as_presence: bool) -> dict[str, Any]:
    """Editable memo fields from an HTML form or a JSON autosave body."""
    snapshot = {
        name: data.get(name) or ""
        for name in ("title", "subtitle", "url", "content", "tags", "category")
    }
    for name in ("publish", "favorite"):
        snapshot[name] = (name in data) if checkboxes_as_presence else bool(data.get(name))
    return snapshot


def list_filters(args: Any, *names: str) -> dict[str, str]:
    """Non-empty text filters to carry across pagination and sort links."""
    return {name: args[name] for name in names if args.get(name)}


def editor_urls(memo_id: str | None) -> dict[str, str]:
    if memo_id is None:
        return {
            "submit_action": url_for("create_memo"),
            "draft_action": url_for("resolve_create_draft"),
            "autosave_action": url_for("autosave_create"),
            "cancel_action": url_for("cancel_create"),
        }
    return {
        "submit_action": url_for("edit_memo", memo_id=memo_id),
        "draft_action": url_for("resolve_edit_draft", memo_id=memo_id),
        "autosave_action": url_for("autosave_edit", memo_id=memo_id),
        "cancel_action": url_for("cancel_edit", memo_id=memo_id),
    }


def render_editor(editor: MemoEditor, status: int = 200):
    return (
        render_template(
            "editor.html",
            editor=editor,
            form=editor.form,
            categories=VALID_CATEGORIES,
            discard_prompt=DISCARD_PROMPT,
            editor_token=uuid.uuid4().hex,
            **editor_urls(None if editor.is_new else editor.memo_id),
        ),
        status,
    )


# =============================================================================
# App factory
# =============================================================================


def create_app(
    store: Datastore | None = None,
    identity: IdentityClient | None = None,
    webhook_secret: str | None = None,
) -> Flask:
    app = Flask(__name__)
    app.secret_key = CONFIG.secret_key
    app.jinja_loader = DictLoader(TEMPLATES)
    app.extensions["memo_store"] = store or get_datastore()
    app.extensions["memo_profiles"] = ProfileService(identity or IdentityClient(), app.extensions["memo_store"])
    app.config["WEBHOOK_SECRET"] = CONFIG.webhook_secret if webhook_secret is None else webhook_secret

    @app.errorhandler(MemoAppError)
    def handle_app_error(error: MemoAppError):
        if request.path.startswith("/api/") or request.is_json:
            return jsonify({"error": error.message}), error.status_code
        back = url_for("owner_list") if request.path.startswith("/individual") else url_for("public_list")
        return (
            render_template("error.html", message=error.message, status=error.status_code, back=back),
            error.status_code,
        )

    # -------------------------------------------------------------------------
    # Lists
    # -------------------------------------------------------------------------

    @app.route("/")
    def public_list():
        query = MemoQuery(
            scope=Scope.PUBLIC,
            category=request.args.get("category", ALL_CATEGORIES),
            search=request.args.get("search", ""),
            tags=request.args.get("tag", ""),
            author=request.args.get("name", ""),
            descending=request.args.get("order", "desc") != "asc",
        )
        page = MemoLister(get_store(), PUBLIC_LIST).fetch(query, cursor=request.args.get("cursor"))
        profiles = get_store().profiles_by_user_ids(m.owner_id for m in page.items)
        return render_template(
            "public_list.html",
            query=query,
            page=page,
            authors={uid: p.display_name for uid, p in profiles.items()},
            categories=(ALL_CATEGORIES, *VALID_CATEGORIES),
            filters=list_filters(request.args, "search", "tag", "name"),
        )

    @app.route("/individual")
    def owner_list():
        user_id = current_session().require_user()
        query = MemoQuery(
            scope=Scope.OWN,
            owner_id=user_id,
            category=request.args.get("category", ALL_CATEGORIES),
            favorite_only=bool(request.args.get("favorite")),
            search=request.args.get("search", ""),
            tags=request.args.get("tag", ""),
        )
        page = MemoLister(get_store(), OWNER_LIST).fetch(query, page=request.args.get("page", 1, type=int))
        return render_template(
            "owner_list.html",
            query=query,
            page=page,
            page_links=get_page_links(page.page, page.total_pages or 1),
            counts=get_store().category_counts(user_id),
            filters=list_filters(request.args, "search", "tag"),
        )

    # -------------------------------------------------------------------------
    # Editor (create and edit share one state machine)
    # -------------------------------------------------------------------------

    def new_editor(memo_id: str | None) -> MemoEditor:
        return MemoEditor(current_session(), get_store(), session_drafts(), memo_id)

    async def open_editor(memo_id: str | None):
        editor = new_editor(memo_id)
        result = await editor.load()
        if result.action is ReconcileAction.USE_DRAFT:
            return render_template(
                "draft_prompt.html",
                prompt=RESTORE_PROMPT,
                action=editor_urls(memo_id)["draft_action"],
            )
        return render_editor(editor)

    async def resolve_draft(memo_id: str | None):
        editor = new_editor(memo_id)
        result = await editor.load()
        if result.action is ReconcileAction.USE_DRAFT:
            editor.resolve_draft(request.form.get("choice") == "restore")
        return render_editor(editor)

    def close(editor: MemoEditor, token: str | None) -> None:
        # Clear again after marking, so an autosave that slipped in between is dropped.
        close_editor(session_storage(), token)
        editor.drafts.clear(editor.key)

    async def autosave(memo_id: str | None):
        data = request.get_json(silent=True) or {}
        token = data.get("editor_token")
        storage = session_storage()
        if editor_closed(storage, token):
            return jsonify({"error": "This editor has already been closed"}), 409
        editor = new_editor(memo_id)
        await editor.attach()
        editor.update(**form_snapshot(data, checkboxes_as_presence=False))
        if editor_closed(storage, token):
            editor.drafts.clear(editor.key)
            return jsonify({"error": "This editor has already been closed"}), 409
        return jsonify({"dirty": editor.guard.dirty})

    async def submit(memo_id: str | None):
        editor = new_editor(memo_id)
        await editor.attach()
        editor.update(**form_snapshot(request.form, checkboxes_as_presence=True))
        target = await editor.submit()
        if target is None:
            return render_editor(editor, status=400)
        close(editor, request.form.get("editor_token"))
        view_cache().invalidate(editor.memo_id)
        return redirect(target)

    async def cancel(memo_id: str | None):
        editor = new_editor(memo_id)
        await editor.attach()
        # The browser already asked for confirmation before posting.
        target = editor.cancel(confirm=lambda _prompt: True)
        close(editor, request.form.get("editor_token"))
        return redirect(target)

    @app.route("/individual/create", methods=["GET", "POST"])
    async def create_memo():
        if request.method == "POST":
            return await submit(None)
        return await open_editor(None)

    @app.post("/individual/create/draft")
    async def resolve_create_draft():
        return await resolve_draft(None)

    @app.post("/individual/create/autosave")
    async def autosave_create():
        return await autosave(None)

    @app.post("/individual/create/cancel")
    async def cancel_create():
        return await cancel(None)

    @app.route("/individual/edit/<memo_id>", methods=["GET", "POST"])
    async def edit_memo(memo_id: str):
        if request.method == "POST":
            return await submit(memo_id)
        return await open_editor(memo_id)

    @app.post("/individual/edit/<memo_id>/draft")
    async def resolve_edit_draft(memo_id: str):
        return await resolve_draft(memo_id)

    @app.post("/individual/edit/<memo_id>/autosave")
    async def autosave_edit(memo_id: str):
        return await autosave(memo_id)

    @app.post("/individual/edit/<memo_id>/cancel")
    async def cancel_edit(memo_id: str):
        return await cancel(memo_id)

    # -------------------------------------------------------------------------
    # Viewers and comments
    # -------------------------------------------------------------------------

    @app.route("/individual/display/<memo_id>")
    def owner_display(memo_id: str):
        viewer = MemoViewer(current_session(), get_store(), view_cache())
        return render_template("owner_display.html", view=viewer.load_own(memo_id))

    @app.post("/individual/display/<memo_id>/delete")
    def delete_memo(memo_id: str):
        viewer = MemoViewer(current_session(), get_store(), view_cache())
        return redirect(viewer.delete_memo(memo_id, drafts=session_drafts()))

    @app.route("/display/<memo_id>")
    def public_display(memo_id: str):
        ctx = current_session()
        view = MemoViewer(ctx, get_store()).load_public(memo_id)
        return render_template("public_display.html", view=view, signed_in=ctx.is_authenticated)

    @app.post("/display/<memo_id>/comments")
    def add_comment(memo_id: str):
        MemoViewer(current_session(), get_store()).add_comment(memo_id, request.form.get("content", ""))
        return redirect(url_for("public_display", memo_id=memo_id))

    @app.post("/comments/<unique_id>/edit")
    def edit_comment(unique_id: str):
        viewer = MemoViewer(current_session(), get_store())
        comment = viewer.edit_comment(unique_id, request.form.get("content", ""))
        return redirect(url_for("public_display", memo_id=comment.memo_id))

    @app.post("/comments/<unique_id>/delete")
    def delete_comment(unique_id: str):
        comment = MemoViewer(current_session(), get_store()).delete_comment(unique_id)
        return redirect(url_for("public_display", memo_id=comment.memo_id))

    @app.post("/preview")
    def preview():
        data = request.get_json(silent=True) or request.form
        return jsonify({"html": render_markdown(data.get("content", ""))})

    # -------------------------------------------------------------------------
    # Profiles and identity sync
    # -------------------------------------------------------------------------

    def profile_page(heading: str, action: str, result=None, status: int = 200):
        return (
            render_template(
                "profile_form.html",
                heading=heading,
                action=action,
                languages=LANGUAGES,
                values=request.form if request.method == "POST" else {},
                error=result.error if result else None,
                message=result.message if result and result.success else None,
            ),
            status,
        )

    def profile_args() -> dict[str, Any]:
        return {
            "atcoder_username": request.form.get("atcoderUsername"),
            "favorite_language": request.form.get("favoriteLanguage"),
            "atcoder_rate": request.form.get("atcoderRate"),
        }

    @app.route("/onboarding", methods=["GET", "POST"])
    def onboarding():
        if request.method == "GET":
            return profile_page("Welcome! Tell us about yourself", url_for("onboarding"))
        result = current_app.extensions["memo_profiles"].complete_onboarding(current_session(), **profile_args())
        if result.success:
            return redirect(url_for("owner_list"))
        return profile_page("Welcome! Tell us about yourself", url_for("onboarding"), result, status=400)

    @app.post("/profile")
    def update_profile():
        result = current_app.extensions["memo_profiles"].update_profile(current_session(), **profile_args())
        if request.is_json or request.accept_mimetypes.best == "application/json":
            return jsonify({k: v for k, v in vars(result).items() if v is not None}), 200 if result.success else 400
        return profile_page("AtCoder Settings", url_for("update_profile"), result, status=200 if result.success else 400)

    @app.post("/api/webhooks/identity")
    def identity_webhook():
        result = handle_identity_webhook(
            get_store(),
            request.get_data(as_text=True),
            request.headers,
            secret=current_app.config["WEBHOOK_SECRET"],
        )
        return result.message, result.status

    return app


def main():
    """Entry point."""
    store = get_datastore()
    store.init_database()
    app = create_app(store)
    print("Open http://localhost:5000 in your browser", file=sys.stderr)
    app.run(port=5000)


if __name__ == "__main__":
    main()
