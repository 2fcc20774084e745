from __future__ import annotations

from typing import Mapping

from .browser import join_url
from .errors import BrowserUnavailableError

_NAV = """
<nav>
  <a href="/"><svg aria-label="Home"></svg></a>
  <a href="/explore/"><svg aria-label="Explore"></svg></a>
  <a href="/reels/"><svg aria-label="Reels"></svg></a>
  <a href="/direct/inbox/"><svg aria-label="Messenger"></svg></a>
  <a href="/accounts/activity/"><svg aria-label="Notifications"></svg></a>
  <a href="/offline_me/" aria-label="Profile"><img alt="offline_me's profile picture" src="https://cdn.example/me.jpg"></a>
</nav>
"""

_HOME = f"""
<html><body>{_NAV}
<div role="button"><div style="background: linear-gradient(45deg, #f09433, #bc1888)"><img alt="maya.lifts's story" src="https://cdn.example/maya.jpg"></div></div>
<div role="button"><img alt="jon_runs's profile picture" src="https://cdn.example/jon.jpg"></div>
<article>
  <header><a href="/maya.lifts/">maya.lifts</a></header>
  <img src="https://scontent.cdninstagram.com/p1.jpg">
  <span>Morning session done, new personal best on the rings today</span>
  <section><span>1,204 likes</span></section>
  <time datetime="2025-01-02T08:00:00.000Z">2d</time>
</article>
<article>
  <header><a href="/jon_runs/">jon_runs</a></header>
  <video src="https://scontent.cdninstagram.com/v1.mp4"></video>
  <span>Trail loop with the crew before sunrise, legs are toast</span>
  <section><span>87 views</span></section>
</article>
<a href="/maya.lifts/">maya.lifts</a>
<a href="/jon_runs/">jon_runs</a>
<a href="/explore/">Explore</a>
</body></html>
"""

_INBOX = f"""
<html><body>{_NAV}
<div tabindex="0"><img alt="maya.lifts's profile picture" src="https://cdn.example/maya.jpg"><span>maya.lifts</span><span>see you at the park later?</span><span style="color: rgb(0, 149, 246)">•</span></div>
<div tabindex="0"><img alt="sam.k's profile picture" src="https://cdn.example/sam.jpg"><span>sam.k</span><span>sent an attachment</span></div>
<a href="/sam.k/">sam.k</a>
</body></html>
"""

_ACTIVITY = f"""
<html><body>{_NAV}
<span>lena_v started following you. 2h</span>
<span>jon_runs liked your post. 5h</span>
<span>maya.lifts liked your story. 1d</span>
<span>sam.k commented: nice form! 1d</span>
<span>rio.dev mentioned you in a comment. 3d</span>
<a href="/lena_v/">lena_v</a>
<a href="/rio.dev/">rio.dev</a>
</body></html>
"""

_EXPLORE = f"""
<html><body>{_NAV}
<div role="presentation"><a href="/coach.ana/">coach.ana</a><span>Followed by maya.lifts</span><button>Follow</button></div>
<div role="presentation"><a href="/parkour.io/">parkour.io</a><span>Suggested for you</span><button>Follow</button></div>
</body></html>
"""

_PROFILE = f"""
<html><body>{_NAV}
<header>
  <h2>offline_me</h2>
  <ul><li><span>12</span> posts</li><li><span>340</span> followers</li><li><span>298</span> following</li></ul>
</header>
</body></html>
"""

_FRIEND_PROFILE = f"""
<html><body>{_NAV}
<header>
  <h2>maya.lifts</h2>
  <ul><li><span>87</span> posts</li><li><span title="1,204">1.2K</span> followers</li><li><span>310</span> following</li></ul>
  <span>Follows you</span>
  <div>Followed by jon_runs and 2 others</div>
</header>
</body></html>
"""

_THREAD = f"""
<html><body>{_NAV}
<div role="grid">
  <div role="row"><span>Today 9:14 AM</span></div>
  <div role="row"><span>maya.lifts</span><span>are we still on for the park session?</span></div>
  <div role="row"><span>You sent</span><span>yes! bringing the rings this time</span></div>
  <div role="row"><span>Seen 2h ago</span></div>
</div>
</body></html>
"""

DEFAULT_OFFLINE_PAGES: dict[str, str] = {
    "/": _HOME,
    "/direct/inbox/": _INBOX,
    "/accounts/activity/": _ACTIVITY,
    "/explore/": _EXPLORE,
    "/accounts/edit/": _PROFILE,
    "/maya.lifts/": _FRIEND_PROFILE,
    "/direct/t/maya.lifts/": _THREAD,
}

_EMPTY_PAGE = "<html><body></body></html>"


class OfflineBrowser:
    """BrowserSurface that serves canned HTML per path, for runs without network."""

    def __init__(
        self,
        pages: Mapping[str, str] | None = None,
        *,
        base_url: str = "https://www.instagram.com",
        start_path: str = "/",
    ) -> None:
        self._pages = dict(DEFAULT_OFFLINE_PAGES if pages is None else pages)
        self._base_url = base_url.rstrip("/")
        self._path = start_path
        self._closed = False
        self.visited: list[str] = []

    def _check_open(self) -> None:
        if self._closed:
            raise BrowserUnavailableError()

    def navigate_to(self, path: str) -> None:
        self._check_open()
        if path.startswith(self._base_url):
            path = path[len(self._base_url) :] or "/"
        self._path = path
        self.visited.append(path)

    def current_url(self) -> str:
        self._check_open()
        return join_url(self._base_url, self._path)

    def read_dom(self) -> str:
        self._check_open()
        return self._pages.get(self._path, _EMPTY_PAGE)

    def close(self) -> None:
        self._closed = True
