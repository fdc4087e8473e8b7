import unittest
from radio_core.models import SourceKind
from radio_core.sources import detect_source, normalize_soundcloud_url, source_display_name

class TestSourceDetection(unittest.TestCase):
    def test_youtube_forms(self):
        for text in [
            "jfKfPfyJRdk",
            "https://www.youtube.com/watch?v=jfKfPfyJRdk",
            "https://www.youtube.com/watch?list=abc&v=jfKfPfyJRdk",
            "https://youtu.be/jfKfPfyJRdk",
            "https://www.youtube.com/embed/jfKfPfyJRdk",
            "https://www.youtube.com/v/jfKfPfyJRdk",
            "  https://youtu.be/jfKfPfyJRdk  ",
        ]:
            with self.subTest(text=text):
                detected = detect_source(text)
                self.assertEqual(detected.source_kind, SourceKind.YOUTUBE)
                self.assertEqual(detected.source_id, "jfKfPfyJRdk")

    def test_soundcloud(self):
        detected = detect_source("http://soundcloud.com/artist/track/?si=abc")
        self.assertEqual(detected.source_kind, SourceKind.SOUNDCLOUD)
        self.assertEqual(detected.source_id, "https://soundcloud.com/artist/track")
        self.assertEqual(detect_source("https://on.soundcloud.com/xyz").source_kind, SourceKind.SOUNDCLOUD)

    def test_unknown(self):
        self.assertIsNone(detect_source(""))
        self.assertIsNone(detect_source("https://example.com/track"))
        self.assertIsNone(detect_source("https://www.youtube.com/channel/foo"))

    def test_normalize(self):
        self.assertEqual(normalize_soundcloud_url("https://m.soundcloud.com/a/b//"), "https://m.soundcloud.com/a/b")

    def test_display_name(self):
        self.assertEqual(source_display_name(SourceKind.SOUNDCLOUD), "SoundCloud")

if __name__ == '__main__':
    unittest.main()
