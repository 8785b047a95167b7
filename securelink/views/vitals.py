from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from securelink.serializers.vitals import VitalsSerializer
from securelink.services.vitals import latest_vitals, record_vitals


@api_view(['POST'])
@permission_classes([AllowAny])
def ingest_vitals(request):
    """Bedside monitor pushes ``{bpm, spo2}`` here; kept as the latest real reading."""
    s = VitalsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    record_vitals(s.validated_data['bpm'], s.validated_data['spo2'])
    return Response({'success': True, 'message': 'Data received successfully'})


ingest_vitals.cls.throttle_scope = 'vitals_ingest'


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def latest(request):
    # POST is how the encrypted client issues reads
    reading, is_real = latest_vitals()
    return Response({'success': True, 'data': reading, 'source': 'device' if is_real else 'simulated'})
