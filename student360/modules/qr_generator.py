"""
QR Code Generator Module - Student360 School Notes System

This module renders student QR codes and the documents used to hand them out.
The encoded payload is the canonical student ID and nothing else; the scanner
side rejects JSON and URL payloads, so nothing richer may be encoded here.

Features:
- PNG rendering of a student ID
- Base64 / data-URL output for inline display
- Download filename convention
- Printable HTML page that opens the print dialog on load
"""

import qrcode
import io
import base64
import logging
from datetime import datetime
from typing import Dict, Any

from jinja2 import Environment

from student360.modules.student_ids import normalize_student_id

PRINT_TEMPLATE = """<html>
  <head><title>Print QR</title></head>
  <body style="font-family:Arial; text-align:center; padding:30px;">
    <h2 style="margin:0 0 8px;">{{ name }}</h2>
    <div style="margin-bottom:10px; font-weight:bold;">StudentID: {{ student_id }}</div>
    <img src="{{ data_url }}" style="width:260px; height:260px;" />
    <div style="margin-top:14px; color:#555;">{{ brand }}</div>
    <script>window.onload = () => window.print();</script>
  </body>
</html>
"""


class QRGenerator:
    """
    Student QR code rendering and output helpers.
    """

    def __init__(self, box_size: int = 8, border: int = 2, brand: str = 'Student360'):
        """
        Initialize the QR code generator.

        Args:
            box_size (int): Pixel size of each QR module
            border (int): Quiet-zone width in modules
            brand (str): Label used in filenames and on the print page
        """
        self.logger = logging.getLogger(__name__)
        self.brand = brand

        self.default_settings = {
            'version': None,  # fit to payload
            'error_correction': qrcode.constants.ERROR_CORRECT_M,
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

        self._print_template = Environment(autoescape=True).from_string(PRINT_TEMPLATE)

    def generate_student_qr_code(self, raw_student_id: str) -> Dict[str, Any]:
        """
        Render the QR code for a student.

        Args:
            raw_student_id (str): Student ID; normalized before encoding

        Returns:
            Dict[str, Any]: Result with PNG bytes, base64, data URL and filename
        """
        student_id = normalize_student_id(raw_student_id)
        if not student_id:
            return {
                'success': False,
                'error': f"Not a valid student ID: {raw_student_id!r}",
                'student_id': raw_student_id
            }

        try:
            settings = self.default_settings
            qr = qrcode.QRCode(
                version=settings['version'],
                error_correction=settings['error_correction'],
                box_size=settings['box_size'],
                border=settings['border']
            )
            qr.add_data(student_id)
            qr.make(fit=True)

            img = qr.make_image(
                fill_color=settings['fill_color'],
                back_color=settings['back_color']
            )

            buffer = io.BytesIO()
            img.save(buffer, format='PNG')
            image_bytes = buffer.getvalue()
            img_base64 = base64.b64encode(image_bytes).decode()

            self.logger.info(f"QR code generated for student {student_id}")
            return {
                'success': True,
                'qr_data': student_id,
                'image_bytes': image_bytes,
                'image_base64': img_base64,
                'data_url': f"data:image/png;base64,{img_base64}",
                'image_size': img.size,
                'filename': self.download_filename(student_id),
                'student_id': student_id,
                'generated_at': datetime.now().isoformat()
            }

        except Exception as e:
            self.logger.error(f"QR code generation failed for {student_id}: {str(e)}")
            return {
                'success': False,
                'error': str(e),
                'student_id': student_id
            }

    def download_filename(self, student_id: str) -> str:
        return f"{self.brand}_{student_id}.png"

    def render_print_view(self, student_name: str, student_id: str, data_url: str) -> str:
        """
        Build the printable page for one student's QR code.

        Name and ID are HTML-escaped; the page calls window.print() on load.
        """
        return self._print_template.render(
            name=student_name or '',
            student_id=student_id,
            data_url=data_url,
            brand=self.brand
        )
