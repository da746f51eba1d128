from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .serializers import RegisterSerializer, LoginSerializer, UserSerializer


def _auth_response(user, message, status_code=status.HTTP_200_OK):
    """User payload plus a fresh JWT pair; the access token also opens the popularity socket."""
    refresh = RefreshToken.for_user(user)
    return Response({
        "message": message,
        "user": UserSerializer(user).data,
        "tokens": {
            "refresh": str(refresh),
            "access": str(refresh.access_token),
        },
    }, status=status_code)


class RegisterView(APIView):
    """
    Create an account and sign it in.

    POST Body:
    {
        "username": "night_owl",
        "password": "at-least-8-chars",
        "email": "owl@example.com",     // optional
        "display_name": "Owl"           // optional, shown instead of the username
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return _auth_response(user, "User registered successfully", status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"error": "Invalid username or password"},
                status=status.HTTP_401_UNAUTHORIZED,
            )
        return _auth_response(serializer.validated_data, "Login successful")


class RefreshTokenView(APIView):
    """Exchange a refresh token for a new access token: {"refresh": "..."}"""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        raw = request.data.get("refresh")
        if not raw:
            return Response({"error": "Refresh token is required"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            access = RefreshToken(raw).access_token
        except TokenError:
            return Response({"error": "Invalid refresh token"}, status=status.HTTP_401_UNAUTHORIZED)
        return Response({"access": str(access)})


class CurrentUserView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)
