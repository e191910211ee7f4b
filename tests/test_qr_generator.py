import base64
import io

from PIL import Image

from student360.modules.qr_generator import QRGenerator


def test_generates_png_for_normalized_id():
    result = QRGenerator().generate_student_qr_code("s10025")

    assert result["success"]
    assert result["qr_data"] == "S-10025"
    assert result["filename"] == "Student360_S-10025.png"
    assert result["data_url"].startswith("data:image/png;base64,")
    assert base64.b64decode(result["image_base64"]) == result["image_bytes"]

    image = Image.open(io.BytesIO(result["image_bytes"]))
    assert image.format == "PNG"
    assert image.size[0] == image.size[1]


def test_rejects_invalid_ids():
    result = QRGenerator().generate_student_qr_code("https://example.com")

    assert not result["success"]


def test_print_view_escapes_and_prints():
    html = QRGenerator().render_print_view("<b>Ali</b>", "S-1", "data:image/png;base64,AAAA")

    assert "&lt;b&gt;Ali&lt;/b&gt;" in html
    assert "StudentID: S-1" in html
    assert 'src="data:image/png;base64,AAAA"' in html
    assert "window.print()" in html
