from rest_framework import serializers


class DirectoryQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, max_length=100)
    sort = serializers.CharField(required=False, allow_blank=True, max_length=64)
    direction = serializers.ChoiceField(choices=['asc', 'desc'], required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
