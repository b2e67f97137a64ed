"""Unit tests for the PeerTube provider using httpx's mock transport."""

import httpx

from models.video import SearchOptions
from services.peertube_service import PeerTubeProvider


def peertube_video(uuid, name, duration=400, views=50):
    return {
        "uuid": uuid,
        "name": name,
        "description": "learn python",
        "duration": duration,
        "views": views,
        "account": {"displayName": "Tech Channel"},
        "thumbnailPath": f"/static/{uuid}.jpg",
        "publishedAt": "2023-05-01T00:00:00Z",
    }


def make_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_merges_results_across_instances():
    requests = []

    def handler(request):
        requests.append(request)
        if request.url.host == "down.example":
            return httpx.Response(500)
        return httpx.Response(200, json={"data": [peertube_video(f"{request.url.host}-1", "Python basics")]})

    provider = PeerTubeProvider(["https://one.example/", "https://down.example", "https://two.example"],
                                client=make_client(handler))

    results = provider.search("python", SearchOptions(max_results=5))

    assert [c.id for c in results] == ["peertube_one.example-1", "peertube_two.example-1"]
    video = results[0]
    assert video.platform == "peertube"
    assert video.channel == "Tech Channel"
    assert video.url == "https://one.example/w/one.example-1"
    assert video.embed_url == "https://one.example/videos/embed/one.example-1"
    assert video.thumbnail == "https://one.example/static/one.example-1.jpg"
    assert requests[0].url.params["search"] == "python"
    assert requests[0].url.params["count"] == "5"


def test_timeouts_and_bad_payloads_are_skipped():
    def handler(request):
        if request.url.host == "slow.example":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"unexpected": True})

    provider = PeerTubeProvider(["https://slow.example", "https://odd.example"], client=make_client(handler))

    assert provider.search("python") == []


def test_channel_falls_back_to_video_channel():
    def handler(request):
        video = peertube_video("u1", "Python")
        video["account"] = None
        video["channel"] = {"displayName": "Fallback Channel"}
        return httpx.Response(200, json={"data": [video]})

    provider = PeerTubeProvider(["https://one.example"], client=make_client(handler))

    assert provider.search("python")[0].channel == "Fallback Channel"
