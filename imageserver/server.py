"""
Bottle application exposing the image service over HTTP.
"""

import json
import logging
import os
from functools import wraps
from typing import Optional
from urllib.parse import quote

from bottle import Bottle, BaseRequest, HTTPResponse, Response, request, response

from .exceptions import ValidationError
from .image_record import ImageDownload
from .image_service import ImageService
from .settings import Settings

logger = logging.getLogger(__name__)


def allow_cross_origin(func):
    """Decorate a view function to allow cross domain access."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except HTTPResponse as r:
            r.set_header('Access-Control-Allow-Origin', '*')
            raise
        (result if isinstance(result, Response) else response) \
            .set_header('Access-Control-Allow-Origin', '*')
        return result
    return wrapper


def text_response(status: int, message: str) -> HTTPResponse:
    r = HTTPResponse(body=message, status=status)
    r.set_header('Content-Type', 'text/plain; charset=utf-8')
    return r


def json_response(data, status: int = 200) -> HTTPResponse:
    r = HTTPResponse(body=json.dumps(data), status=status)
    r.set_header('Content-Type', 'application/json')
    return r


def file_response(download: ImageDownload) -> HTTPResponse:
    """Return image bytes inline, named for the client."""
    dn_q = quote(os.path.basename(download.file_name).encode('utf-8'))
    r = HTTPResponse(body=download.data)
    r.set_header('Content-Type', download.content_type)
    r.set_header('Content-Length', str(len(download.data)))
    r.set_header('Content-Disposition', f"inline; filename*=utf-8''{dn_q}")
    return r


def parse_dimension(value: str, name: str) -> Optional[int]:
    """
    Parse an optional integer query parameter.

    Raises:
        ValidationError: If the value is present but not an integer
    """
    if value is None or value == '':
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer.")


def read_upload():
    """
    Return (data, file_name, content_type) of the multipart 'file' field.

    Raises:
        ValidationError: If no file was sent or it is empty
    """
    upload = request.files.get('file')
    if upload is None:
        raise ValidationError("File is empty.")
    data = upload.file.read()
    if not data:
        raise ValidationError("File is empty.")
    return data, upload.raw_filename, upload.content_type or None


def create_app(service: ImageService, settings: Optional[Settings] = None) -> Bottle:
    """Build the Bottle application around an ImageService."""
    settings = settings or Settings()
    BaseRequest.MEMFILE_MAX = settings.max_upload_bytes

    app = Bottle()

    @app.route('/')
    @allow_cross_origin
    def main_page():
        return 'Image server'

    @app.route('/api/images/upload', method='POST')
    @allow_cross_origin
    def upload_image():
        try:
            data, file_name, content_type = read_upload()
            result = service.upload_image(data, file_name, content_type)
        except ValidationError as e:
            logger.info(f"Rejected upload: {e}")
            return text_response(400, str(e))
        return json_response(result.to_dict())

    @app.route('/api/images', method='GET')
    @allow_cross_origin
    def get_all_images():
        return json_response([record.to_dict() for record in service.get_all_images()])

    @app.route('/api/images/<image_id>', method='GET')
    @allow_cross_origin
    def get_image(image_id):
        record = service.get_image(image_id)
        if record is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        return json_response(record.to_dict())

    @app.route('/api/images/<image_id>/download', method='GET')
    @allow_cross_origin
    def download_image(image_id):
        result = service.download_image(image_id)
        if result is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        return file_response(result)

    @app.route('/api/images/<image_id>/download/<resolution>', method='GET')
    @allow_cross_origin
    def download_image_with_resolution(image_id, resolution):
        result = service.download_image_with_resolution(image_id, resolution)
        if result is None:
            return text_response(
                404, f"Image with ID {image_id} not found or resolution {resolution} is invalid."
            )
        return file_response(result)

    @app.route('/api/images/<image_id>/resize', method='GET')
    @allow_cross_origin
    def get_resized_image(image_id):
        try:
            width = parse_dimension(request.query.get('width'), 'width')
            height = parse_dimension(request.query.get('height'), 'height')
        except ValidationError as e:
            return text_response(400, str(e))
        if width is None and height is None:
            return text_response(400, "Either width or height must be specified.")

        result = service.get_resized_image(image_id, width, height)
        if result is None:
            return text_response(404, f"Image with ID {image_id} not found or invalid dimensions.")
        return file_response(result)

    @app.route('/api/images/<image_id>/resize/<height:int>', method='GET')
    @allow_cross_origin
    def get_resized_image_by_height(image_id, height):
        record = service.get_image(image_id)
        if record is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        if height > record.height:
            return text_response(400, "Requested height cannot be greater than original image height.")

        result = service.get_resized_image(image_id, None, height)
        if result is None:
            return text_response(404, "Could not generate resized image.")
        return file_response(result)

    @app.route('/api/images/<image_id>/resize/<height:int>/url', method='GET')
    @allow_cross_origin
    def get_resized_image_url(image_id, height):
        result = service.get_resized_image_url(image_id, height)
        if result is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        if result.error is not None:
            return text_response(400, result.error)
        return json_response(result.to_dict())

    @app.route('/api/images/<image_id>/resolutions', method='GET')
    @allow_cross_origin
    def get_available_resolutions(image_id):
        resolutions = service.get_available_resolutions(image_id)
        if resolutions is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        return json_response(resolutions)

    @app.route('/api/images/<image_id>', method='PUT')
    @allow_cross_origin
    def update_image(image_id):
        try:
            data, file_name, content_type = read_upload()
            result = service.update_image(image_id, data, file_name, content_type)
        except ValidationError as e:
            logger.info(f"Rejected replacement of {image_id}: {e}")
            return text_response(400, str(e))
        if result is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        return json_response(result.to_dict())

    @app.route('/api/images/<image_id>', method='DELETE')
    @allow_cross_origin
    def delete_image(image_id):
        if not service.delete_image(image_id):
            return text_response(404, f"Image with ID {image_id} not found.")
        return HTTPResponse(status=204)

    @app.route('/api/images/<image_id>/generate-resolutions', method='POST')
    @allow_cross_origin
    def generate_predefined_resolutions(image_id):
        result = service.generate_predefined_resolutions(image_id)
        if result is None:
            return text_response(404, f"Image with ID {image_id} not found.")
        return json_response(result.to_dict())

    return app
