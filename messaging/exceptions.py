from rest_framework.exceptions import APIException

class EventValidationError(APIException):
    """
    Raised when an inbound MT5 event is malformed or misses fields its kind requires.
    """
    status_code = 400
    default_detail = 'Invalid trading event.'
    default_code = 'event_validation_error'

class EventProcessingError(APIException):
    """
    Raised for unexpected failures while processing an event. Never carries internal detail.
    """
    status_code = 500
    default_detail = 'Internal server error'
    default_code = 'event_processing_error'
