"""Renderers producing JSON from morphed results."""
from rest_framework.renderers import JSONRenderer

from .result import MorphedResult
from .serializers import MorphedResultSerializer


class MorphedJSONRenderer(JSONRenderer):
    """JSON renderer that morphs response data before rendering it.

    This lets views return morphed results (or lists of them) directly:

        .. code:: python

            class UserView(APIView):
                renderer_classes = [MorphedJSONRenderer]

                def get(self, request):
                    result = MorphedResult(request.user.profile)
                    result.exclude_attribute("password")
                    return Response(result)

    """

    def get_serializer_context(self, renderer_context):
        """Get the context passed to the morphed result serializer."""
        renderer_context = renderer_context or {}
        return {
            key: renderer_context[key]
            for key in ("request", "view")
            if key in renderer_context
        }

    def render(self, data, accepted_media_type=None, renderer_context=None):
        """Render morphed results into JSON."""
        if isinstance(data, MorphedResult) or (
            isinstance(data, (list, tuple))
            and data
            and all(isinstance(item, MorphedResult) for item in data)
        ):
            data = MorphedResultSerializer(
                data,
                many=not isinstance(data, MorphedResult),
                context=self.get_serializer_context(renderer_context),
            ).data

        return super().render(data, accepted_media_type, renderer_context)


def render_json(value, provider=None, primary_serializer=None):
    """Render the value, plain or morphed, into JSON bytes."""
    data = MorphedResultSerializer(
        value, primary_serializer=primary_serializer, provider=provider
    ).data
    return MorphedJSONRenderer().render(data)
