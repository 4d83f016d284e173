import base64
import unittest
from unittest import mock

import requests

from safegaze_server.core.errors import ImageFetchError
from safegaze_server.core.fetcher import ImageFetcher
from safegaze_server.core.telemetry import RedactionCounters, domain_of


def fake_response(content=b"image-bytes", status_code=200):
    response = mock.Mock(spec=requests.Response)
    response.content = content
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


class ImageFetcherTestCase(unittest.TestCase):

    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.fetcher = ImageFetcher(timeout=3.0, session=self.session)

    def test_http_download(self):
        self.session.get.return_value = fake_response()
        self.assertEqual(self.fetcher.fetch("https://example.com/a.jpg"), b"image-bytes")
        self.session.get.assert_called_once_with("https://example.com/a.jpg", timeout=3.0)

    def test_protocol_relative_urls(self):
        self.assertEqual(ImageFetcher.normalize_url("//cdn.example.com/a.jpg"), "https://cdn.example.com/a.jpg")
        self.assertEqual(ImageFetcher.normalize_url("://cdn.example.com/a.jpg"), "https://cdn.example.com/a.jpg")

    def test_data_url(self):
        payload = base64.b64encode(b"\x89PNG").decode()
        self.assertEqual(self.fetcher.fetch(f"data:image/png;base64,{payload}"), b"\x89PNG")
        self.session.get.assert_not_called()

    def test_malformed_data_urls(self):
        for url in ("data:image/png;base64", "data:image/svg+xml,<svg/>", "data:image/png;base64,@@@"):
            with self.subTest(url=url):
                with self.assertRaises(ImageFetchError):
                    self.fetcher.fetch(url)

    def test_http_error(self):
        self.session.get.return_value = fake_response(status_code=404)
        with self.assertRaises(ImageFetchError):
            self.fetcher.fetch("https://example.com/missing.jpg")

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(ImageFetchError):
            self.fetcher.fetch("https://example.com/a.jpg")

    def test_empty_body(self):
        self.session.get.return_value = fake_response(content=b"")
        with self.assertRaises(ImageFetchError):
            self.fetcher.fetch("https://example.com/a.jpg")

    def test_empty_url(self):
        with self.assertRaises(ImageFetchError):
            self.fetcher.fetch("")


class RedactionCountersTestCase(unittest.TestCase):

    def test_domain_of(self):
        self.assertEqual(domain_of("https://Images.Example.com/a.jpg"), "images.example.com")
        self.assertEqual(domain_of("//cdn.example.com/a.jpg"), "cdn.example.com")
        self.assertIsNone(domain_of("data:image/png;base64,AAAA"))
        self.assertIsNone(domain_of(None))

    def test_blurred_images(self):
        counters = RedactionCounters()
        counters.record_blurred_image("https://a.example.com/1.jpg")
        counters.record_blurred_image("https://a.example.com/2.jpg")
        counters.record_blurred_image()
        self.assertEqual(counters.blurred_images, 3)
        self.assertEqual(counters.blurred_for_domain("a.example.com"), 2)

    def test_harmful_sites_are_distinct_domains(self):
        counters = RedactionCounters()
        counters.record_harmful_site("https://a.example.com/1.jpg")
        counters.record_harmful_site("https://a.example.com/2.jpg")
        counters.record_harmful_site("https://b.example.com/1.jpg")
        counters.record_harmful_site("data:image/png;base64,AAAA")
        self.assertEqual(counters.harmful_sites, 2)
        self.assertEqual(counters.snapshot()["harmful_sites"], 2)


if __name__ == "__main__":
    unittest.main()
