from typing import Any, Dict, Optional

from flask import jsonify, request


class APIResponse:
    """Standardized API response handler"""

    @staticmethod
    def success(data: Any = None, message: Optional[str] = None, status_code: int = 200, **fields):
        """Standard success response; extra keyword fields sit beside ``success``."""
        response_data: Dict[str, Any] = {'success': True}
        if message:
            response_data['message'] = message
        if data is not None:
            response_data['data'] = data
        response_data.update(fields)
        return jsonify(response_data), status_code

    @staticmethod
    def error(message: str, errors: Optional[Dict] = None, status_code: int = 400, **fields):
        """Standard error response"""
        response_data: Dict[str, Any] = {'success': False, 'error': message}
        if errors:
            response_data['errors'] = errors
        response_data.update(fields)
        return jsonify(response_data), status_code

    @staticmethod
    def not_found(resource: str = "Resource"):
        return APIResponse.error(message=f"{resource} not found", status_code=404)

    @staticmethod
    def handle_request_content() -> Dict[str, Any]:
        """Smart request content handling"""
        if request.is_json:
            data = request.get_json(silent=True)
            return data if isinstance(data, dict) else {}
        if request.form:
            return request.form.to_dict()
        return {}


__all__ = ['APIResponse']
