import json
import threading
import time
from pathlib import Path

import pytest
from werkzeug.test import Client

from tiny.errors import SiteConfigError, SiteError
from tiny.site import PageData, RobotsTXT, Site, SiteMap, SiteMapURL, UserAgent, load_site

SITE_YML = """
metadata:
  title: Test site
  description: Site description
layouts:
  base:
    - templates/base.html
pages:
  home:
    path: /
    layout: base
    components: [templates/home.html]
    data: json://data/home.json
  about:
    path: /about
    layout: base
    components: [templates/about.html]
    metadata:
      title: About us
  post:
    path: /posts/<slug>
    components: [templates/post.html]
  listing:
    path: /listing
    components: [templates/listing.html]
    data: [one, two]
"""


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_project(root: Path, site_yml: str = SITE_YML) -> Path:
    write(
        root / "templates" / "base.html",
        "<html><head><title>[[ metadata.title ]]</title>"
        '<meta name="description" content="[[ metadata.description ]]"></head>'
        "<body>[[ page_content ]]</body></html>",
    )
    write(root / "templates" / "home.html", "<h1>[[ data.heading ]]</h1>")
    write(root / "templates" / "about.html", "<p>about [[ page.get_cookie('theme') ]]</p>")
    write(
        root / "templates" / "post.html",
        "<article>[[ data.slug if data else 'none' ]]</article>",
    )
    write(root / "templates" / "listing.html", "[[ data|join(',') ]]")
    write(root / "data" / "home.json", json.dumps({"heading": "Welcome"}))
    return write(root / "site.yml", site_yml)


def test_serves_pages_with_layout_and_metadata(tmp_path):
    site = load_site(create_project(tmp_path))

    home = Client(site).get("/")
    assert home.status_code == 200
    assert home.headers["Content-Type"] == "text/html; charset=utf-8"
    assert "<title>Test site</title>" in home.text
    assert "<h1>Welcome</h1>" in home.text

    client = Client(site)
    client.set_cookie("theme", "dark")
    about = client.get("/about")
    assert "<title>About us</title>" in about.text
    assert 'content="Site description"' in about.text
    assert "<p>about dark</p>" in about.text

    assert Client(site).get("/listing").text == "one,two"


def test_default_pages_are_registered(tmp_path):
    site = load_site(create_project(tmp_path))
    for name in ("robots.txt", "sitemap.xml", "error", "not_found"):
        assert site.pages[name].embedded

    robots = Client(site).get("/robots.txt")
    assert robots.status_code == 200
    assert robots.headers["Content-Type"] == "text/plain; charset=utf-8"
    assert robots.text == "User-agent: *\nAllow: /\n"

    sitemap = Client(site).get("/sitemap.xml")
    assert sitemap.headers["Content-Type"] == "application/xml; charset=utf-8"
    assert "<loc>/</loc>" in sitemap.text
    assert "<changefreq>daily</changefreq>" in sitemap.text
    assert "<priority>1.0</priority>" in sitemap.text


def test_robots_and_sitemap_handlers(tmp_path):
    site = load_site(create_project(tmp_path))
    site.config.metadata.set_base_url("https://example.com/")
    site.set_robots_txt_data_handler(
        "robots.txt",
        lambda request, response: RobotsTXT(
            user_agents=[UserAgent(user_agent="Googlebot", disallow=["/admin"], allow=["/"])]
        ),
    )
    site.set_sitemap_data_handler(
        "sitemap.xml",
        lambda request, response: SiteMap(
            url_set=[SiteMapURL(loc="/about", change_freq="weekly", priority=0.5)]
        ),
    )

    assert Client(site).get("/robots.txt").text == (
        "User-agent: Googlebot\n"
        "Disallow: /admin\n"
        "Allow: /\n"
        "Sitemap: https://example.com/sitemap.xml\n"
    )
    sitemap = Client(site).get("/sitemap.xml").text
    assert "<loc>https://example.com/about</loc>" in sitemap
    assert "<changefreq>weekly</changefreq>" in sitemap
    assert "<priority>0.5</priority>" in sitemap


def test_unknown_path_renders_not_found_page(tmp_path):
    site = load_site(create_project(tmp_path))
    response = Client(site).get("/nope")
    assert response.status_code == 404
    assert "does not exist" in response.text
    assert "<title>Test site</title>" in response.text


def test_method_not_allowed(tmp_path):
    site = load_site(create_project(tmp_path))
    response = Client(site).post("/")
    assert response.status_code == 405
    head = Client(site).head("/")
    assert head.status_code == 200
    assert head.data == b""


def test_path_params_reach_data_handler(tmp_path):
    site = load_site(create_project(tmp_path))
    site.set_data_handler(
        "post", lambda request, response: {"slug": request.path_params["slug"]}
    )
    assert Client(site).get("/posts/hello-world").text == "<article>hello-world</article>"


def test_data_handler_can_replace_page_data(tmp_path):
    site = load_site(create_project(tmp_path))

    def handler(request, response):
        data = site.get_page_data("post", request)
        data.data = {"slug": "custom"}
        data.metadata.set_title("Custom")
        return data

    site.set_data_handler("post", handler)
    assert Client(site).get("/posts/x").text == "<article>custom</article>"


def test_data_handler_errors_render_error_pages(tmp_path):
    yml = SITE_YML + """
  forbidden:
    components: [templates/forbidden.html]
errors:
  forbidden: [403]
"""
    project = create_project(tmp_path, yml)
    write(tmp_path / "templates" / "forbidden.html", "denied: [[ error.message ]]")
    site = load_site(project)

    def forbid(request, response):
        raise SiteError(403, "members only")

    site.set_data_handler("post", forbid)
    response = Client(site).get("/posts/x")
    assert response.status_code == 403
    assert response.text == "denied: members only"

    site.set_data_handler("post", lambda request, response: ValueError("bad value"))
    response = Client(site).get("/posts/x")
    assert response.status_code == 500
    assert "<h1>500</h1>" in response.text
    assert "bad value" in response.text


def test_broken_template_gives_error_page(tmp_path):
    project = create_project(tmp_path)
    write(tmp_path / "templates" / "post.html", "[% if %]")
    site = load_site(project)
    response = Client(site).get("/posts/x")
    assert response.status_code == 500
    assert "<h1>500</h1>" in response.text


def test_broken_error_page_falls_back_to_plain_text(tmp_path):
    yml = SITE_YML + """
  error:
    path: /error
    components: [templates/error.html]
"""
    project = create_project(tmp_path, yml)
    write(tmp_path / "templates" / "error.html", "[[ error.missing.field ]]")
    site = load_site(project)

    def boom(request, response):
        raise RuntimeError("boom")

    site.set_data_handler("post", boom)
    response = Client(site).get("/posts/x")
    assert response.status_code == 500
    assert response.text == "Internal Server Error"
    assert response.headers["Content-Type"] == "text/plain; charset=utf-8"


def test_data_handler_can_redirect_and_set_cookies(tmp_path):
    site = load_site(create_project(tmp_path))

    def handler(request, response):
        response.set_cookie("seen", "1")
        if request.args.get("go"):
            response.redirect("/about")
        return {"slug": "stay"}

    site.set_data_handler("post", handler)

    stay = Client(site).get("/posts/x")
    assert stay.text == "<article>stay</article>"
    assert stay.headers["Set-Cookie"].startswith("seen=1")

    moved = Client(site).get("/posts/x?go=1")
    assert moved.status_code == 302
    assert moved.headers["Location"] == "/about"


def test_set_data_handler_unknown_page(tmp_path):
    site = load_site(create_project(tmp_path))
    with pytest.raises(SiteError) as excinfo:
        site.set_data_handler("missing", lambda request, response: None)
    assert excinfo.value.code == 404
    site.set_data_handlers({"about": lambda request, response: None})
    assert site.data_handler("about") is not None


def test_yaml_data_and_reload(tmp_path):
    yml = SITE_YML.replace("json://data/home.json", "yaml://data/home.yml")
    project = create_project(tmp_path, "reload: true\n" + yml)
    data_file = write(tmp_path / "data" / "home.yml", "heading: First\n")
    site = load_site(project)
    assert "<h1>First</h1>" in Client(site).get("/").text

    write(data_file, "heading: Second\n")
    assert "<h1>Second</h1>" in Client(site).get("/").text

    write(data_file, "heading: [broken\n")
    assert Client(site).get("/").status_code == 500


def test_missing_data_file_fails_at_startup(tmp_path):
    project = create_project(tmp_path)
    (tmp_path / "data" / "home.json").unlink()
    with pytest.raises(SiteConfigError, match="read data from file"):
        load_site(project)


def test_validation(tmp_path):
    yml = SITE_YML + """
  ghost:
    path: /ghost
    layout: nowhere
    components: [templates/ghost.html]
"""
    project = create_project(tmp_path, yml)
    with pytest.raises(SiteConfigError) as excinfo:
        load_site(project)
    message = str(excinfo.value)
    assert "page: ghost, layout: nowhere not found" in message
    assert "ghost.html does not exist" in message

    site = load_site(create_project(tmp_path, "validate: false\n" + yml))
    assert len(site.validate()) == 2


def test_auth_pages(tmp_path):
    yml = SITE_YML + """
  private:
    path: /private
    auth: true
    components: [templates/private.html]
"""
    project = create_project(tmp_path, yml)
    write(tmp_path / "templates" / "private.html", "hello [[ user ]] [[ authenticated ]]")

    with pytest.raises(SiteConfigError, match="no auth info func"):
        load_site(project)

    def auth_info(request):
        if request.cookies.get("session") == "ok":
            return "jack", True
        return None, False

    site = load_site(project, auth_info=auth_info)
    anonymous = Client(site).get("/private")
    assert anonymous.status_code == 302
    assert anonymous.headers["Location"] == "/login?redirect=/private"

    client = Client(site)
    client.set_cookie("session", "ok")
    signed_in = client.get("/private")
    assert signed_in.status_code == 200
    assert signed_in.text == "hello jack True"


def test_static_files_are_cached(tmp_path):
    project = create_project(tmp_path, "static: static\ncache_max_age: 1h\n" + SITE_YML)
    write(tmp_path / "static" / "app.js", "console.log(1)")
    site = load_site(project)

    response = Client(site).get("/static/app.js")
    assert response.status_code == 200
    assert response.text == "console.log(1)"
    assert response.headers["Cache-Control"] == "public, max-age=3600"
    assert Client(site).get("/static/missing.js").status_code == 404


def test_custom_funcs(tmp_path):
    project = create_project(tmp_path)
    write(tmp_path / "templates" / "listing.html", "[[ data|shout ]]")
    site = load_site(project, funcs={"shout": lambda value: f"{value[0]}!"})
    assert Client(site).get("/listing").text == "one!"


def test_router_is_built_once(tmp_path):
    site = load_site(create_project(tmp_path))
    Client(site).get("/")
    router = site._router
    Client(site).get("/about")
    assert site._router is router


def test_router_is_built_once_under_concurrent_first_requests(tmp_path, monkeypatch):
    site = load_site(create_project(tmp_path))
    build_router = Site.build_router
    calls = []

    def counting_build_router(self):
        calls.append(self)
        time.sleep(0.05)
        return build_router(self)

    monkeypatch.setattr(Site, "build_router", counting_build_router)
    barrier = threading.Barrier(8)
    statuses = []

    def request_home():
        client = Client(site)
        barrier.wait()
        statuses.append(client.get("/").status_code)

    threads = [threading.Thread(target=request_home) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert statuses == [200] * 8


def test_error_response_keeps_handler_headers(tmp_path):
    site = load_site(create_project(tmp_path))

    def handler(request, response):
        response.set_cookie("seen", "1")
        response.headers["X-Trace"] = "abc"
        if request.args.get("raise"):
            raise SiteError(403, "members only")
        return SiteError(404, "no such post")

    site.set_data_handler("post", handler)

    returned = Client(site).get("/posts/x")
    assert returned.status_code == 404
    assert returned.headers["Set-Cookie"].startswith("seen=1")
    assert returned.headers["X-Trace"] == "abc"
    assert returned.headers["Content-Type"] == "text/html; charset=utf-8"

    raised = Client(site).get("/posts/x?raise=1")
    assert raised.status_code == 403
    assert raised.headers["Set-Cookie"].startswith("seen=1")
    assert len(raised.headers.getlist("Content-Type")) == 1


def test_malformed_page_path_is_rejected(tmp_path):
    yml = SITE_YML.replace("path: /posts/<slug>", "path: /posts/<slug")
    project = create_project(tmp_path, yml)
    with pytest.raises(SiteConfigError, match="page: post, path: /posts/<slug is invalid"):
        load_site(project)

    site = load_site(create_project(tmp_path, "validate: false\n" + yml))
    client = Client(site)
    assert client.get("/").status_code == 200
    assert client.get("/posts/x").status_code == 404


def test_funcs_and_auth_info_are_keyword_only(tmp_path):
    project = create_project(tmp_path)
    funcs = {"shout": lambda value: f"{value}!"}
    with pytest.raises(TypeError):
        load_site(project, funcs)
    with pytest.raises(TypeError):
        Site.from_file(project, funcs)


def test_page_data_defaults():
    data = PageData()
    assert data.metadata == {}
    assert data.get_cookie("missing") == ""
    assert data.error is None
