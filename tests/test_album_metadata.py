import json
import tempfile
import unittest
from pathlib import Path

from photometa.album_metadata import (
    build_album_metadata,
    find_image_files,
    generate_metadata,
    group_images_by_album,
    photos_needing_dimensions,
    read_existing_metadata,
    valid_dimensions,
)
from photometa.image_size import Dimensions, MalformedPngError


def _write_stub_png(path: Path, *, width: int, height: int) -> None:
    sig = b"\x89PNG\r\n\x1a\n"
    ihdr_len = (13).to_bytes(4, "big", signed=False)
    w = int(width).to_bytes(4, "big", signed=False)
    h = int(height).to_bytes(4, "big", signed=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(sig + ihdr_len + b"IHDR" + w + h + bytes([8, 2, 0, 0, 0]))


def _write_stub_gif(path: Path, *, width: int, height: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"GIF89a" + width.to_bytes(2, "little") + height.to_bytes(2, "little") + bytes(3))


class TestAlbumScan(unittest.TestCase):
    def test_find_and_group(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "images"
            _write_stub_png(root / "Summer in Rome" / "b.png", width=2, height=2)
            _write_stub_gif(root / "Summer in Rome" / "nested" / "a.gif", width=3, height=3)
            _write_stub_png(root / "Oslo" / "IMG.1.PNG", width=4, height=4)
            (root / "Oslo" / "notes.txt").write_text("x")

            files = find_image_files(root)
            self.assertEqual(len(files), 3)
            albums = group_images_by_album(root, files)

        self.assertEqual(sorted(albums), ["oslo", "summer-in-rome"])
        self.assertEqual(sorted(albums["summer-in-rome"]), ["a", "b"])
        self.assertEqual(list(albums["oslo"]), ["IMG.1"])

    def test_missing_images_dir(self):
        with self.assertRaises(FileNotFoundError):
            find_image_files("/nonexistent/photometa/images")


class TestBuildAlbumMetadata(unittest.TestCase):
    def test_new_album_gets_placeholders_and_dimensions(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            _write_stub_png(root / "b.png", width=20, height=10)
            _write_stub_png(root / "a.png", width=30, height=40)
            res = build_album_metadata("rome", {"b": root / "b.png", "a": root / "a.png"})

        self.assertTrue(res.ok())
        meta = res.metadata
        self.assertEqual(
            list(meta), ["slug", "name", "country", "dateDescription", "startDate", "endDate", "photos"]
        )
        self.assertEqual(meta["slug"], "rome")
        self.assertEqual(meta["name"], "Add name")
        self.assertEqual(meta["country"], "")
        self.assertEqual(meta["dateDescription"], "Add date description")
        self.assertEqual(meta["startDate"], "YYYY-MM-DD")
        self.assertEqual(meta["endDate"], "YYYY-MM-DD")
        self.assertEqual([p["fileName"] for p in meta["photos"]], ["a", "b"])
        self.assertEqual(
            meta["photos"][0],
            {"fileName": "a", "caption": "", "location": "Add location", "dimensions": {"width": 30, "height": 40}},
        )
        self.assertTrue(any(m.startswith("Added dimensions for a in album rome: 30x40") for m in res.messages))

    def test_preserves_existing_fields_and_order(self):
        existing = {
            "slug": "  roma ",
            "name": "Rome",
            "country": "Italy",
            "dateDescription": "  Summer 2023 ",
            "startDate": "2023-07-01",
            "endDate": "",
            "photos": [
                {"fileName": "z", "caption": "", "location": "  Forum ", "dimensions": {"width": 1, "height": 1}},
                {"fileName": "gone", "caption": "deleted photo"},
                {"fileName": "m", "caption": "Colosseum", "location": "   ", "dimensions": {"width": 5, "height": 6}},
            ],
        }
        calls = []

        def measure(path):
            calls.append(path.name)
            return Dimensions(7, 8)

        photos = {"m": Path("m.png"), "new2": Path("new2.png"), "z": Path("z.png"), "new1": Path("new1.png")}
        res = build_album_metadata("rome", photos, existing, measure=measure)

        meta = res.metadata
        self.assertEqual(meta["slug"], "roma")
        self.assertEqual(meta["name"], "Rome")
        self.assertEqual(meta["country"], "Italy")
        self.assertEqual(meta["dateDescription"], "Summer 2023")
        self.assertEqual(meta["startDate"], "2023-07-01")
        self.assertEqual(meta["endDate"], "YYYY-MM-DD")
        self.assertEqual([p["fileName"] for p in meta["photos"]], ["z", "m", "new1", "new2"])
        by_name = {p["fileName"]: p for p in meta["photos"]}
        self.assertEqual(by_name["z"]["location"], "Forum")
        self.assertEqual(by_name["z"]["dimensions"], {"width": 1, "height": 1})
        self.assertEqual(by_name["m"]["caption"], "Colosseum")
        self.assertEqual(by_name["m"]["location"], "Add location")
        self.assertEqual(by_name["new1"]["dimensions"], {"width": 7, "height": 8})
        self.assertEqual(sorted(calls), ["new1.png", "new2.png"])

    def test_force_dimensions_remeasures(self):
        existing = {"photos": [{"fileName": "a", "dimensions": {"width": 1, "height": 1}}]}
        res = build_album_metadata(
            "x", {"a": Path("a.png")}, existing, force_dimensions=True, measure=lambda p: Dimensions(9, 9)
        )
        self.assertEqual(res.metadata["photos"][0]["dimensions"], {"width": 9, "height": 9})
        self.assertTrue(res.messages[0].startswith("Updated dimensions for a"))

    def test_invalid_existing_dimensions_are_repaired(self):
        existing = {"photos": [{"fileName": "a", "dimensions": {"width": 0, "height": 5}}]}
        res = build_album_metadata("x", {"a": Path("a.png")}, existing, measure=lambda p: Dimensions(3, 5))
        self.assertEqual(res.metadata["photos"][0]["dimensions"], {"width": 3, "height": 5})
        self.assertTrue(res.messages[0].startswith("Repaired dimensions for a"))

    def test_failed_photo_is_reported_and_skipped(self):
        def measure(path):
            if path.name == "bad.png":
                raise MalformedPngError("invalid PNG (too short)")
            return Dimensions(2, 2)

        res = build_album_metadata("x", {"bad": Path("bad.png"), "ok": Path("ok.png")}, {}, measure=measure)
        self.assertFalse(res.ok())
        self.assertEqual(len(res.errors), 1)
        self.assertIn("Error processing photo bad in album x", res.errors[0])
        self.assertIn("too short", res.errors[0])
        self.assertEqual([p["fileName"] for p in res.metadata["photos"]], ["ok"])

    def test_custom_placeholders(self):
        res = build_album_metadata("x", {}, {}, placeholders={"name": "Untitled", "location": "?"})
        self.assertEqual(res.metadata["name"], "Untitled")
        self.assertEqual(res.metadata["photos"], [])

    def test_photos_needing_dimensions(self):
        existing = {"photos": [{"fileName": "a", "dimensions": {"width": 1, "height": 1}}, {"fileName": "b"}]}
        photos = {"a": Path("a.png"), "b": Path("b.png"), "c": Path("c.png")}
        self.assertEqual(photos_needing_dimensions(photos, existing), [Path("b.png"), Path("c.png")])
        self.assertEqual(len(photos_needing_dimensions(photos, existing, force_dimensions=True)), 3)

    def test_valid_dimensions(self):
        self.assertTrue(valid_dimensions({"width": 1, "height": 2}))
        for value in (None, {}, {"width": 1}, {"width": 0, "height": 2}, {"width": "1", "height": 2}, [1, 2]):
            with self.subTest(value=value):
                self.assertFalse(valid_dimensions(value))


class TestGenerateMetadata(unittest.TestCase):
    def _layout(self, root: Path) -> tuple[Path, Path]:
        images = root / "images"
        metadata = root / "metadata"
        _write_stub_png(images / "Summer in Rome" / "colosseum.png", width=1920, height=1080)
        _write_stub_gif(images / "Summer in Rome" / "forum.gif", width=640, height=480)
        _write_stub_png(images / "Oslo" / "fjord.png", width=800, height=1200)
        return images, metadata

    def test_writes_one_file_per_album(self):
        with tempfile.TemporaryDirectory() as td:
            images, metadata = self._layout(Path(td))
            report = generate_metadata(images, metadata)
            self.assertTrue(report.ok())
            self.assertEqual(sorted(p.name for p in report.written), ["oslo.json", "summer-in-rome.json"])

            rome = json.loads((metadata / "summer-in-rome.json").read_text(encoding="utf-8"))
            self.assertEqual(rome["slug"], "summer-in-rome")
            self.assertEqual(
                {p["fileName"]: p["dimensions"] for p in rome["photos"]},
                {"colosseum": {"width": 1920, "height": 1080}, "forum": {"width": 640, "height": 480}},
            )
            text = (metadata / "oslo.json").read_text(encoding="utf-8")
            self.assertTrue(text.startswith('{\n  "slug": "oslo"'))

    def test_rerun_preserves_edits(self):
        with tempfile.TemporaryDirectory() as td:
            images, metadata = self._layout(Path(td))
            generate_metadata(images, metadata)
            path = metadata / "oslo.json"
            data = json.loads(path.read_text(encoding="utf-8"))
            data["name"] = "Oslo"
            data["photos"][0]["caption"] = "Fjord at dawn"
            data["photos"][0]["dimensions"] = {"width": 1, "height": 1}
            path.write_text(json.dumps(data), encoding="utf-8")

            report = generate_metadata(images, metadata)
            self.assertTrue(report.ok())
            again = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(again["name"], "Oslo")
            self.assertEqual(again["photos"][0]["caption"], "Fjord at dawn")
            self.assertEqual(again["photos"][0]["dimensions"], {"width": 1, "height": 1})

            generate_metadata(images, metadata, force_dimensions=True)
            forced = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(forced["photos"][0]["dimensions"], {"width": 800, "height": 1200})
            self.assertEqual(forced["photos"][0]["caption"], "Fjord at dawn")

    def test_any_failure_writes_nothing(self):
        with tempfile.TemporaryDirectory() as td:
            images, metadata = self._layout(Path(td))
            (images / "Oslo" / "broken.png").write_bytes(b"\x89PNG")
            report = generate_metadata(images, metadata)
            self.assertFalse(report.ok())
            self.assertEqual(report.written, [])
            self.assertEqual(len(report.errors), 1)
            self.assertIn("broken", report.errors[0])
            self.assertFalse(metadata.exists())
            with self.assertRaises(ValueError):
                report.raise_if_errors()

    def test_unreadable_existing_metadata_is_a_warning(self):
        with tempfile.TemporaryDirectory() as td:
            images, metadata = self._layout(Path(td))
            metadata.mkdir()
            (metadata / "oslo.json").write_text("{not json", encoding="utf-8")
            report = generate_metadata(images, metadata)
            self.assertTrue(report.ok())
            self.assertEqual(len(report.warnings), 1)
            self.assertIn("oslo", report.warnings[0])
            data = read_existing_metadata(metadata / "oslo.json")
            self.assertEqual(data["name"], "Add name")

    def test_workers_give_same_result(self):
        with tempfile.TemporaryDirectory() as td:
            images, _ = self._layout(Path(td))
            for i in range(8):
                _write_stub_png(images / "Oslo" / f"extra{i}.png", width=10 + i, height=20 + i)
            serial = generate_metadata(images, Path(td) / "serial")
            threaded = generate_metadata(images, Path(td) / "threaded", workers=4)
            self.assertEqual([a.metadata for a in serial.albums], [a.metadata for a in threaded.albums])

    def test_rejects_bad_workers(self):
        with tempfile.TemporaryDirectory() as td:
            images, metadata = self._layout(Path(td))
            with self.assertRaises(ValueError):
                generate_metadata(images, metadata, workers=0)


if __name__ == "__main__":
    unittest.main()
