import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("conversation_type", models.CharField(choices=[("direct", "Direct Message"), ("group", "Group")], db_index=True, default="direct", help_text="Type of conversation (direct or group)", max_length=10)),
                ("name", models.CharField(blank=True, default="", help_text="Name for group conversations (empty for direct)", max_length=100)),
                ("last_message_at", models.DateTimeField(blank=True, help_text="Timestamp of the most recent message", null=True)),
                ("admin", models.ForeignKey(blank=True, help_text="Group admin (null for direct conversations)", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="administered_conversations", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-updated_at", "-id"],
                "indexes": [models.Index(fields=["-updated_at", "-id"], name="chat_conv_updated_idx")],
            },
        ),
        migrations.CreateModel(
            name="DirectConversationPair",
            fields=[
                ("conversation", models.OneToOneField(help_text="The direct conversation this pair represents", on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name="direct_pair", serialize=False, to="chat.conversation")),
                ("user_lower", models.ForeignKey(help_text="User with the lower id", on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("user_higher", models.ForeignKey(help_text="User with the higher id (same as user_lower for self-chat)", on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_direct_conversation_pair",
                "constraints": [
                    models.UniqueConstraint(fields=("user_lower", "user_higher"), name="unique_direct_conversation_pair"),
                    models.CheckConstraint(condition=models.Q(("user_lower_id__lte", models.F("user_higher_id"))), name="user_lower_not_above_higher"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConversationMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("joined_at", models.DateTimeField(default=django.utils.timezone.now, help_text="When the user joined the conversation")),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="members", to="chat.conversation")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="conversation_memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_conversation_member",
                "ordering": ["joined_at", "id"],
                "indexes": [models.Index(fields=["user", "conversation"], name="chat_member_user_conv_idx")],
                "constraints": [models.UniqueConstraint(fields=("conversation", "user"), name="unique_conversation_member")],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("content", models.TextField(help_text="Message text")),
                ("deleted", models.BooleanField(default=False, help_text="Logically deleted (content hidden, reactions suppressed)")),
                ("status", models.CharField(choices=[("sent", "Sent"), ("delivered", "Delivered"), ("read", "Read")], default="sent", max_length=10)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, help_text="Server-assigned creation time (pagination key with id)")),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="chat.conversation")),
                ("sender", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sent_messages", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["conversation", "-created_at", "-id"], name="chat_msg_conv_created_idx")],
            },
        ),
        migrations.CreateModel(
            name="Reaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("emoji", models.CharField(max_length=32)),
                ("message", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reactions", to="chat.message")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="message_reactions", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_reaction",
                "ordering": ["id"],
                "constraints": [models.UniqueConstraint(fields=("message", "user", "emoji"), name="unique_message_user_emoji")],
            },
        ),
        migrations.CreateModel(
            name="UnreadCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("count", models.PositiveIntegerField(default=0)),
                ("last_read_at", models.DateTimeField(blank=True, help_text="When the user last marked the conversation as read", null=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="unread_counters", to="chat.conversation")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="unread_counters", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_unread_counter",
                "constraints": [models.UniqueConstraint(fields=("conversation", "user"), name="unique_unread_counter")],
            },
        ),
        migrations.CreateModel(
            name="TypingSignal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("expires_at", models.DateTimeField(db_index=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="typing_signals", to="chat.conversation")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="typing_signals", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_typing_signal",
                "constraints": [models.UniqueConstraint(fields=("conversation", "user"), name="unique_typing_signal")],
            },
        ),
        migrations.CreateModel(
            name="PresenceRecord",
            fields=[
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name="presence", serialize=False, to=settings.AUTH_USER_MODEL)),
                ("online", models.BooleanField(db_index=True, default=False)),
                ("last_seen", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "chat_presence_record",
            },
        ),
    ]
