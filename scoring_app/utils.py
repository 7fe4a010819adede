from rest_framework import serializers


class LabelChoiceField(serializers.ChoiceField):
    """
    Accepts the stored key or its human label, case-insensitive, so
    "Custom", "custom" and "CUSTOM" all map to FormulaKind.CUSTOM.
    Always returns the key.
    """
    def to_internal_value(self, data):
        text = str(data).strip()
        if text in self.choices:
            return text
        lookup = {}
        for key, label in self.choices.items():
            lookup[str(key).lower()] = key
            lookup[str(label).lower()] = key
        try:
            return lookup[text.lower()]
        except KeyError:
            self.fail("invalid_choice", input=data)
