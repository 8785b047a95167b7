from rest_framework import serializers

class VitalsSerializer(serializers.Serializer):
    bpm = serializers.CharField(max_length=8)
    spo2 = serializers.CharField(max_length=8)

    def _numeric(self, v, lo, hi, label):
        v = (v or '').strip()
        try:
            n = float(v)
        except ValueError:
            raise serializers.ValidationError(f'{label} must be numeric')
        if n < lo or n > hi:
            raise serializers.ValidationError(f'{label} out of range')
        return v

    def validate_bpm(self, v):
        return self._numeric(v, 20, 250, 'bpm')

    def validate_spo2(self, v):
        return self._numeric(v, 50, 100, 'spo2')
