"""Input sanitization and Brazilian document/phone masks."""
import re


class InputSanitizer:
    """
    Normalizes user-supplied text before it is stored or forwarded.

    Protections:
    - XSS: Remove HTML/JavaScript from free text
    - Masks: CPF and phone numbers are stored in one canonical format
    - Length limits: Enforced by Pydantic models
    """

    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
    SCRIPT_PATTERN = re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL)
    JAVASCRIPT_PATTERN = re.compile(r'javascript:', re.IGNORECASE)
    NON_DIGIT_PATTERN = re.compile(r'\D')

    @staticmethod
    def sanitize_message(message: str) -> str:
        """
        Sanitize free text (chat messages, customer names).

        Removes HTML tags and JavaScript, collapses whitespace.
        """
        if not message:
            return message

        message = InputSanitizer.SCRIPT_PATTERN.sub('', message)
        message = InputSanitizer.JAVASCRIPT_PATTERN.sub('', message)
        message = InputSanitizer.HTML_TAG_PATTERN.sub('', message)

        return ' '.join(message.split()).strip()

    @staticmethod
    def format_cpf(value: str) -> str:
        """
        Apply the CPF mask progressively: 12345678901 -> 123.456.789-01.

        Extra digits are dropped.
        """
        digits = InputSanitizer.NON_DIGIT_PATTERN.sub('', value or '')
        masked = re.sub(r'(\d{3})(\d)', r'\1.\2', digits, count=1)
        masked = re.sub(r'(\d{3})(\d)', r'\1.\2', masked, count=1)
        masked = re.sub(r'(\d{3})(\d{1,2})', r'\1-\2', masked, count=1)
        return re.sub(r'(-\d{2})\d+?$', r'\1', masked)

    @staticmethod
    def format_phone(value: str) -> str:
        """
        Apply the mobile phone mask progressively: 85999999999 -> (85) 99999-9999.

        Extra digits are dropped.
        """
        digits = InputSanitizer.NON_DIGIT_PATTERN.sub('', value or '')
        masked = re.sub(r'(\d{2})(\d)', r'(\1) \2', digits, count=1)
        masked = re.sub(r'(\d{5})(\d)', r'\1-\2', masked, count=1)
        return re.sub(r'(-\d{4})\d+?$', r'\1', masked)
