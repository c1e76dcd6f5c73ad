"""Jinja templates for the web UI, served through a DictLoader."""

BASE = """
<!DOCTYPE html>
<html>
<head>
    <title>{% block title %}AtCoder Memo{% endblock %}</title>
    <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/katex@0.16.11/dist/katex.min.css">
    <script defer src="https://cdn.jsdelivr.net/npm/katex@0.16.11/dist/katex.min.js"></script>
    <script defer src="https://cdn.jsdelivr.net/npm/katex@0.16.11/dist/contrib/auto-render.min.js"
            onload="renderMathInElement(document.body)"></script>
    <style>
        body { font-family: system-ui; max-width: 1000px; margin: 0 auto; padding: 20px; background: #f8fafc; color: #111827; }
        a { color: #2563eb; text-decoration: none; }
        .header { display: flex; justify-content: space-between; align-items: center; gap: 10px; flex-wrap: wrap; }
        .layout { display: flex; gap: 24px; }
        aside { width: 220px; flex-shrink: 0; }
        main { flex: 1; }
        .card { background: #fff; padding: 15px; margin: 10px 0; border-radius: 8px; border-left: 4px solid #2563eb; }
        .category { display: inline-block; padding: 2px 8px; border-radius: 4px; font-size: 12px; font-weight: bold; color: #fff; }
        .all { background: #000; }
        .algorithm { background: #ef4444; }
        .dataStructure { background: #3b82f6; }
        .math { background: #22c55e; }
        .others { background: #6b7280; }
        .tag { background: #e5e7eb; padding: 2px 6px; border-radius: 3px; font-size: 11px; margin-right: 5px; }
        .meta { color: #6b7280; font-size: 12px; margin-top: 8px; }
        .error { background: #fee2e2; color: #991b1b; padding: 10px; border-radius: 6px; }
        .pagination { display: flex; gap: 6px; align-items: center; flex-wrap: wrap; }
        .pagination a, .pagination span { padding: 6px 12px; background: #e0e7ff; border-radius: 5px; }
        .pagination span.current { background: #2563eb; color: #fff; font-weight: bold; }
        input[type=text], input[type=url], textarea, select { width: 100%; padding: 8px; box-sizing: border-box; }
        textarea { min-height: 280px; font-family: monospace; }
        .markdown-body pre { background: #f3f4f6; padding: 10px; overflow-x: auto; }
    </style>
</head>
<body>
    {% block body %}{% endblock %}
</body>
</html>
"""

MEMO_CARD = """
<div class="card">
    <a href="{{ href }}"><strong>{{ memo.title }}</strong></a>
    {% if memo.favorite and show_favorite %}<span title="favorite">&#9733;</span>{% endif %}
    <span class="category {{ memo.category }}">{{ memo.category }}</span>
    {% if memo.subtitle %}<p>{{ memo.subtitle }}</p>{% endif %}
    <div>{% for t in memo.tag_list %}<span class="tag">{{ t }}</span>{% endfor %}</div>
    {% if author %}<div class="meta">{{ author }} | {{ memo.created_at[:19] }}</div>{% endif %}
</div>
"""

PUBLIC_LIST = """
{% extends "base.html" %}
{% block body %}
<div class="layout">
    <aside>
        <form method="get" action="{{ url_for('public_list') }}">
            <input type="text" name="search" placeholder="Filter by Word" value="{{ query.search }}">
            <input type="text" name="tag" placeholder="Filter by Tags" value="{{ query.tags }}">
            <input type="text" name="name" placeholder="Filter by Atcoder Name" value="{{ query.author }}">
            <input type="hidden" name="category" value="{{ query.category }}">
            <input type="hidden" name="order" value="{{ 'desc' if query.descending else 'asc' }}">
            <button type="submit">Search</button>
        </form>
        <h3>category</h3>
        {% for key in categories %}
        <div><a class="category {{ key }}" href="{{ url_for('public_list', category=key, **filters) }}">{{ key }}</a></div>
        {% endfor %}
        <p><a href="{{ url_for('owner_list') }}">My Memo</a></p>
    </aside>
    <main>
        <div class="header">
            <h1>Global Memo</h1>
            <a href="{{ url_for('public_list', category=query.category, order='asc' if query.descending else 'desc', **filters) }}">
                {{ "Newest" if query.descending else "Oldest" }}
            </a>
        </div>
        {% for memo in page.items %}
            {% with href=url_for('public_display', memo_id=memo.id), author=authors.get(memo.owner_id, 'Unknown'), show_favorite=False %}
                {% include "memo_card.html" %}
            {% endwith %}
        {% else %}
            <p>No memos found.</p>
        {% endfor %}
        {% if page.has_more %}
        <a href="{{ url_for('public_list', category=query.category, order='desc' if query.descending else 'asc', cursor=page.cursor, **filters) }}">Load more</a>
        {% endif %}
    </main>
</div>
{% endblock %}
"""

OWNER_LIST = """
{% extends "base.html" %}
{% block body %}
<div class="layout">
    <aside>
        <form method="get" action="{{ url_for('owner_list') }}">
            <input type="text" name="search" placeholder="Filter by name" value="{{ query.search }}">
            <input type="text" name="tag" placeholder="Filter by tags" value="{{ query.tags }}">
            <input type="hidden" name="category" value="{{ query.category }}">
            {% if query.favorite_only %}<input type="hidden" name="favorite" value="1">{% endif %}
            <button type="submit">Search</button>
        </form>
        <p>
            <a href="{{ url_for('owner_list', category=query.category, **filters) }}">All Memo</a> |
            <a href="{{ url_for('owner_list', category=query.category, favorite=1, **filters) }}">Favorite Memo</a>
        </p>
        <h3>category</h3>
        {% for key, count in counts.items() %}
        <div>
            <a class="category {{ key }}" href="{{ url_for('owner_list', category=key, favorite=1 if query.favorite_only else None, **filters) }}">{{ key }}</a>
            {{ count }}
        </div>
        {% endfor %}
        <p><a href="{{ url_for('public_list') }}">Global Memo</a></p>
    </aside>
    <main>
        <div class="header">
            <h1>My Memo</h1>
            <a href="{{ url_for('create_memo') }}">New Memo</a>
        </div>
        {% for memo in page.items %}
            {% with href=url_for('owner_display', memo_id=memo.id), author=None, show_favorite=True %}
                {% include "memo_card.html" %}
            {% endwith %}
        {% else %}
            <p>No memos yet.</p>
        {% endfor %}
        <div class="pagination">
            {% for p in page_links %}
                {% if p == "..." %}<span>...</span>
                {% elif p == page.page %}<span class="current">{{ p }}</span>
                {% else %}<a href="{{ url_for('owner_list', page=p, category=query.category, favorite=1 if query.favorite_only else None, **filters) }}">{{ p }}</a>
                {% endif %}
            {% endfor %}
        </div>
    </main>
</div>
{% endblock %}
"""

DRAFT_PROMPT = """
{% extends "base.html" %}
{% block body %}
<h1>{{ prompt }}</h1>
<form method="post" action="{{ action }}">
    <button type="submit" name="choice" value="restore">Restore draft</button>
    <button type="submit" name="choice" value="discard">Discard draft</button>
</form>
{% endblock %}
"""

EDITOR = """
{% extends "base.html" %}
{% block body %}
<div class="header">
    <form id="cancel-form" method="post" action="{{ cancel_action }}">
        <input type="hidden" name="editor_token" value="{{ editor_token }}">
        <button type="submit">Back</button>
    </form>
    <h1>{{ "New Memo" if editor.is_new else "Edit Memo" }}</h1>
</div>
{% if editor.error %}<div class="error">Error: {{ editor.error }}</div>{% endif %}
<form id="memo-form" method="post" action="{{ submit_action }}">
    <input type="hidden" name="editor_token" value="{{ editor_token }}">
    <label><input type="checkbox" name="favorite" {% if form.favorite %}checked{% endif %}> &#9733;</label>
    <label>Title <input type="text" name="title" placeholder="Memo's Title" value="{{ form.title }}" required></label>
    <label>Summary <input type="text" name="subtitle" placeholder="Supplementary Information (Option)" value="{{ form.subtitle }}"></label>
    <label>URL <input type="url" name="url" placeholder="https://example.com (Option)" value="{{ form.url }}"></label>
    <label>Content <textarea name="content" placeholder="Detailed Content (Option)">{{ form.content }}</textarea></label>
    <label><input type="checkbox" name="publish" {% if form.publish %}checked{% endif %}> Publish</label>
    <label>tags (space delimiter) <input type="text" name="tags" placeholder="dp algorithm" value="{{ form.tags }}"></label>
    <label>category
        <select name="category" required>
            <option value="">Please Select</option>
            {% for c in categories %}<option value="{{ c }}" {% if form.category == c %}selected{% endif %}>{{ c }}</option>{% endfor %}
        </select>
    </label>
    <button type="submit">{{ "Create New Memo" if editor.is_new else "Edit" }}</button>
</form>
<script>
    // Mirrors SaveGuard: plain flags, set synchronously before the request leaves.
    const guard = { dirty: {{ "true" if editor.guard.dirty else "false" }}, saving: false };
    const persisted = {{ editor.persisted.to_dict()|tojson }};
    const editorToken = {{ editor_token|tojson }};
    const form = document.getElementById("memo-form");
    const cancelForm = document.getElementById("cancel-form");
    let pending = Promise.resolve();

    function snapshot() {
        const data = new FormData(form);
        return {
            title: data.get("title") || "", subtitle: data.get("subtitle") || "",
            url: data.get("url") || "", content: data.get("content") || "",
            publish: data.has("publish"), tags: data.get("tags") || "",
            category: data.get("category") || "", favorite: data.has("favorite"),
        };
    }
    function isModified() {
        const current = snapshot();
        return Object.keys(current).some((name) => current[name] !== persisted[name]);
    }
    form.addEventListener("input", () => {
        guard.dirty = isModified();
        const body = JSON.stringify({ ...snapshot(), editor_token: editorToken });
        // Autosaves go out one at a time, in typing order.
        pending = pending.then(() => fetch("{{ autosave_action }}", {
            method: "POST", headers: { "Content-Type": "application/json" }, body,
        }).catch(() => {}));
    });
    function leaveAfterAutosaves(target) {
        guard.saving = true;
        pending.then(() => target.submit());
    }
    form.addEventListener("submit", (e) => {
        e.preventDefault();
        leaveAfterAutosaves(form);
    });
    cancelForm.addEventListener("submit", (e) => {
        e.preventDefault();
        if (isModified() && !confirm({{ discard_prompt|tojson }})) return;
        leaveAfterAutosaves(cancelForm);
    });
    window.addEventListener("beforeunload", (e) => {
        if (!guard.saving && isModified()) { e.preventDefault(); e.returnValue = ""; }
    });
</script>
{% endblock %}
"""

OWNER_DISPLAY = """
{% extends "base.html" %}
{% block body %}
<div class="header">
    <a href="{{ url_for('owner_list') }}">Back</a>
    <div>
        <a href="{{ url_for('edit_memo', memo_id=view.memo.id) }}">Edit</a>
        <form method="post" action="{{ url_for('delete_memo', memo_id=view.memo.id) }}" style="display:inline"
              onsubmit="return confirm('Do you really want to delete this memo?')">
            <button type="submit">Delete</button>
        </form>
    </div>
</div>
{% include "memo_body.html" %}
{% endblock %}
"""

MEMO_BODY = """
<h1>{% if view.memo.favorite %}&#9733; {% endif %}{{ view.memo.title }}</h1>
{% if view.author_name %}<div class="meta">{{ view.author_name }}</div>{% endif %}
{% if view.memo.subtitle %}<p>{{ view.memo.subtitle }}</p>{% endif %}
{% if view.memo.url %}<p><a href="{{ view.memo.url }}" target="_blank" rel="noopener noreferrer">{{ view.memo.url }}</a></p>{% endif %}
<div class="card markdown-body">{{ view.html|safe }}</div>
<div class="meta">Last updated: {{ view.memo.updated_at[:16].replace("T", " ") }}</div>
<div>{% for t in view.memo.tag_list %}<span class="tag">{{ t }}</span>{% endfor %}</div>
<span class="category {{ view.memo.category }}">{{ view.memo.category }}</span>
{% if not view.memo.published %}<span class="meta">private</span>{% endif %}
"""

PUBLIC_DISPLAY = """
{% extends "base.html" %}
{% block body %}
<div class="header">
    <a href="{{ url_for('public_list') }}">Back</a>
    {% if view.can_modify %}<a href="{{ url_for('edit_memo', memo_id=view.memo.id) }}">Edit</a>{% endif %}
</div>
{% include "memo_body.html" %}
<h2>Comments</h2>
{% for c in view.comments %}
<div class="card" id="comment-{{ c.comment.unique_id }}">
    <div class="meta">{{ c.author_name }} | {{ c.comment.created_at[:19] }}{% if c.comment.updated_at %} (edited){% endif %}</div>
    <div class="markdown-body">{{ c.html|safe }}</div>
    {% if c.can_edit %}
    <details>
        <summary>Edit</summary>
        <form method="post" action="{{ url_for('edit_comment', unique_id=c.comment.unique_id) }}">
            <textarea name="content">{{ c.comment.content }}</textarea>
            <button type="submit">Save</button>
        </form>
    </details>
    <form method="post" action="{{ url_for('delete_comment', unique_id=c.comment.unique_id) }}"
          onsubmit="return confirm('Delete this comment?')">
        <button type="submit">Delete</button>
    </form>
    {% endif %}
</div>
{% else %}
<p>No comments yet.</p>
{% endfor %}
{% if signed_in %}
<form method="post" action="{{ url_for('add_comment', memo_id=view.memo.id) }}">
    <label>Add a comment <textarea name="content" required></textarea></label>
    <button type="submit">Comment</button>
</form>
{% else %}
<p class="meta">Sign in to comment.</p>
{% endif %}
{% endblock %}
"""

PROFILE_FORM = """
{% extends "base.html" %}
{% block body %}
<h1>{{ heading }}</h1>
{% if error %}<div class="error">{{ error }}</div>{% endif %}
{% if message %}<p>{{ message }}</p>{% endif %}
<form method="post" action="{{ action }}">
    <label>AtCoder Username <input type="text" name="atcoderUsername" placeholder="your_atcoder_username" value="{{ values.atcoderUsername or '' }}" required></label>
    <label>Favorite Programming Language
        <select name="favoriteLanguage">
            <option value="">Select a language</option>
            {% for lang in languages %}<option value="{{ lang }}" {% if values.favoriteLanguage == lang %}selected{% endif %}>{{ lang }}</option>{% endfor %}
        </select>
    </label>
    <label>AtCoder Rate <input type="text" name="atcoderRate" value="{{ values.atcoderRate or '' }}"></label>
    <button type="submit">Save</button>
</form>
{% endblock %}
"""

ERROR = """
{% extends "base.html" %}
{% block body %}
<h1>{{ "Memo not found" if status == 404 else "Something went wrong" }}</h1>
<div class="error">{{ message }}</div>
<p><a href="{{ back }}">Back</a></p>
{% endblock %}
"""

TEMPLATES = {
    "base.html": BASE,
    "memo_card.html": MEMO_CARD,
    "memo_body.html": MEMO_BODY,
    "public_list.html": PUBLIC_LIST,
    "owner_list.html": OWNER_LIST,
    "draft_prompt.html": DRAFT_PROMPT,
    "editor.html": EDITOR,
    "owner_display.html": OWNER_DISPLAY,
    "public_display.html": PUBLIC_DISPLAY,
    "profile_form.html": PROFILE_FORM,
    "error.html": ERROR,
}
