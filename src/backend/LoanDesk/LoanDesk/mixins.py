"""Generic API view classes shared by the LoanDesk apps."""

from rest_framework import generics


class SerializerContextMixin:
    """Add the requesting user to the serializer context."""

    def get_serializer_context(self):
        """Pass the request user through to the serializer."""
        context = super().get_serializer_context()
        request = context.get('request')
        context['user'] = getattr(request, 'user', None)
        return context


class CleanMixin:
    """Model mixin class which strips surrounding whitespace from text input."""

    def clean_data(self, data: dict) -> dict:
        """Return a copy of the request data with string values stripped."""
        if not hasattr(data, 'items'):
            return data

        clean = {}

        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
            clean[key] = value

        return clean

    def create(self, request, *args, **kwargs):
        """Override to clean data before processing it."""
        request._full_data = self.clean_data(request.data)
        return super().create(request, *args, **kwargs)

    def update(self, request, *args, **kwargs):
        """Override to clean data before processing it."""
        request._full_data = self.clean_data(request.data)
        return super().update(request, *args, **kwargs)


class ListAPI(generics.ListAPIView):
    """View for list API."""


class CreateAPI(CleanMixin, generics.CreateAPIView):
    """View for create API."""


class RetrieveAPI(generics.RetrieveAPIView):
    """View for retrieve API."""


class ListCreateAPI(CleanMixin, generics.ListCreateAPIView):
    """View for list and create API."""


class RetrieveUpdateAPI(CleanMixin, generics.RetrieveUpdateAPIView):
    """View for retrieve and update API."""


class RetrieveUpdateDestroyAPI(CleanMixin, generics.RetrieveUpdateDestroyAPIView):
    """View for retrieve, update and destroy API."""

